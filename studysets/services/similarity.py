"""
Near-duplicate detection for answer options and decoy generation.

The comparison is a positional character overlap, not an edit distance:
option replacement decisions downstream depend on its exact behaviour.
"""
from typing import List, Sequence

SHORT_OPTION_LENGTH = 10
SIMILARITY_THRESHOLD = 0.7

ALTERNATIVE_TEMPLATES = (
    "A different aspect of {hint}",
    "Unrelated concept to {hint}",
    "Opposite of the correct answer",
    "Common misconception about {hint}",
)


def is_too_similar(first: str, second: str) -> bool:
    a = first.lower().strip()
    b = second.lower().strip()

    if len(a) < SHORT_OPTION_LENGTH or len(b) < SHORT_OPTION_LENGTH:
        return a == b or a in b or b in a

    max_length = max(len(a), len(b))
    same_chars = sum(1 for x, y in zip(a, b) if x == y)
    return same_chars / max_length > SIMILARITY_THRESHOLD


def generate_alternative(question: str, existing_options: Sequence[str], topic_hint: str) -> str:
    """Return the first templated decoy that does not collide with an existing option."""
    for template in ALTERNATIVE_TEMPLATES:
        candidate = template.format(hint=topic_hint)
        if not any(is_too_similar(candidate, existing) for existing in existing_options):
            return candidate
    return f"Alternative {len(existing_options) + 1}: {topic_hint}"


def find_similar_options(options: Sequence[str]) -> List[int]:
    """Indexes of options that are too similar to some earlier option."""
    flagged = [False] * len(options)
    for i in range(len(options)):
        for j in range(i + 1, len(options)):
            if is_too_similar(options[i], options[j]):
                flagged[j] = True
    return [idx for idx, hit in enumerate(flagged) if hit]
