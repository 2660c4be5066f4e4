"""
Turn raw LLM question objects into questions that are safe to persist.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

import structlog

from studysets.services.answers import resolve_answer
from studysets.services.categories import make_more_specific, topic_hint_for
from studysets.services.similarity import find_similar_options, generate_alternative

logger = structlog.get_logger()

REQUIRED_OPTION_COUNT = 4

RawQuestion = Dict[str, Any]
CategoryResolver = Callable[[str, str], Optional[str]]


class InvalidQuestion(ValueError):
    pass


@dataclass
class NormalizedQuestion:
    question: str
    options: List[str]
    answer: str
    explanation: str = ""
    category: Optional[str] = None
    related_material: Optional[str] = None


@dataclass
class NormalizationResult:
    questions: List[NormalizedQuestion] = field(default_factory=list)
    skipped: int = 0


def coerce_options(raw_options: Any) -> List[str]:
    if isinstance(raw_options, list):
        options = raw_options
    elif isinstance(raw_options, str):
        try:
            options = json.loads(raw_options)
        except ValueError as e:
            raise InvalidQuestion(f"options is not a JSON array: {e}") from e
        if not isinstance(options, list):
            raise InvalidQuestion("options is not a JSON array")
    else:
        options = []

    if not options:
        raise InvalidQuestion("question has no options")
    return [str(o) for o in options]


def pad_options(options: List[str]) -> List[str]:
    # more than four options are kept as-is
    padded = list(options)
    while len(padded) < REQUIRED_OPTION_COUNT:
        padded.append(f"Option {len(padded) + 1}")
    return padded


def replace_similar_options(question: str, options: List[str], topic_hint: str) -> List[str]:
    fixed = list(options)
    for idx in find_similar_options(options):
        logger.warning("similar_options_replaced", question=question[:30], option=fixed[idx])
        others = [o for i, o in enumerate(fixed) if i != idx]
        fixed[idx] = generate_alternative(question, others, topic_hint)
    return fixed


def _resolve_category(
    question: str, category: Optional[str], resolve_category: Optional[CategoryResolver]
) -> Optional[str]:
    if not category or resolve_category is None:
        return category
    try:
        return resolve_category(category, question) or None
    except Exception as e:
        logger.warning("category_resolution_failed", category=category, error=str(e))
        return None


def normalize_question(
    raw: RawQuestion,
    resolve_category: Optional[CategoryResolver] = None,
    image_url: Optional[str] = None,
) -> NormalizedQuestion:
    question = raw.get("question")
    if not question or not raw.get("options"):
        raise InvalidQuestion("question missing required fields")
    question = str(question)

    raw_category = raw.get("category")
    category = None
    if raw_category and isinstance(raw_category, str):
        category = make_more_specific(question, raw_category)

    options = pad_options(coerce_options(raw.get("options")))
    options = replace_similar_options(question, options, topic_hint_for(question, category))
    answer = resolve_answer(raw.get("answer"), options)

    related_material = None
    if image_url and raw.get("include_image") is True:
        related_material = image_url

    explanation = raw.get("explanation")
    return NormalizedQuestion(
        question=question,
        options=options,
        answer=answer.text,
        explanation=str(explanation) if explanation else "",
        category=_resolve_category(question, category, resolve_category),
        related_material=related_material,
    )


def normalize_questions(
    raw_questions: Iterable[Any],
    resolve_category: Optional[CategoryResolver] = None,
    image_url: Optional[str] = None,
) -> NormalizationResult:
    """
    Normalize a batch of raw questions one at a time.

    Invalid entries and exact duplicates (same question text) are skipped and
    counted; a failure on one entry never aborts the rest of the batch.
    """
    result = NormalizationResult()
    seen = set()

    for raw in raw_questions:
        if not isinstance(raw, dict):
            logger.warning("question_invalid_format", value=repr(raw)[:80])
            result.skipped += 1
            continue

        text = raw.get("question")
        if isinstance(text, str) and text in seen:
            logger.warning("question_duplicate_skipped", question=text[:30])
            result.skipped += 1
            continue

        try:
            normalized = normalize_question(raw, resolve_category, image_url)
        except InvalidQuestion as e:
            logger.warning("question_skipped", reason=str(e), question=str(text)[:30])
            result.skipped += 1
            continue

        seen.add(normalized.question)
        result.questions.append(normalized)

    return result
