from typing import Any, NamedTuple, Sequence

import structlog

logger = structlog.get_logger()


class ResolvedAnswer(NamedTuple):
    index: int
    text: str


def _as_index(raw_answer: Any):
    # bool is an int subclass but never an option index
    if isinstance(raw_answer, bool):
        return None
    if isinstance(raw_answer, int):
        return raw_answer
    if isinstance(raw_answer, float) and raw_answer.is_integer():
        return int(raw_answer)
    return None


def resolve_answer(raw_answer: Any, options: Sequence[str]) -> ResolvedAnswer:
    """
    Map the LLM's answer field onto one of the options.

    Numbers in range are treated as indexes, strings are matched exactly and then
    case-insensitively (both after stripping). Anything unresolvable falls back
    to the first option, so the returned text is always a member of options.
    """
    if not options:
        raise ValueError("options must not be empty")

    index = _as_index(raw_answer)
    if index is not None and 0 <= index < len(options):
        return ResolvedAnswer(index, options[index])

    if isinstance(raw_answer, str) and raw_answer:
        wanted = raw_answer.strip()
        for i, option in enumerate(options):
            if option.strip() == wanted:
                return ResolvedAnswer(i, option)

        wanted_lower = wanted.lower()
        for i, option in enumerate(options):
            if option.strip().lower() == wanted_lower:
                return ResolvedAnswer(i, option)

        logger.warning("answer_not_in_options", answer=raw_answer, options=list(options))

    return ResolvedAnswer(0, options[0])
