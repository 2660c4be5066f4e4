"""
Quiz generation: a bounded retry state machine around the LLM.

Every text attempt sends a smaller window of the source document. The first
attempt that yields a usable batch is normalized and persisted one question
at a time; only running out of attempts is reported as a failure.
"""
from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

import structlog

from studysets import config
from studysets.services.llm import clean_json_like
from studysets.services.logging import log_performance
from studysets.services.monitoring import AI_GENERATION_REQUESTS, QUESTIONS_SAVED
from studysets.services.normalizer import RawQuestion, normalize_questions

logger = structlog.get_logger()

# Characters of source text sent on attempt 1, 2 and 3
ATTEMPT_WINDOWS: Tuple[int, ...] = (14000, 8000, 4000)

EXHAUSTED_MESSAGE = "Failed to generate quiz after multiple attempts"
NO_CONTENT_MESSAGE = "No content available for quiz generation"


class ResponseParseError(ValueError):
    pass


class ResponseShape(str, Enum):
    WRAPPED = "quiz_questions"
    BARE_ARRAY = "array"
    LEGACY = "questions"


@dataclass
class DecodedResponse:
    shape: ResponseShape
    questions: List[RawQuestion]


def decode_response(raw: str) -> DecodedResponse:
    """Decode one of the accepted response shapes into a list of raw questions."""
    try:
        parsed = json.loads(clean_json_like(raw or ""))
    except ValueError as e:
        raise ResponseParseError(f"response is not valid JSON: {e}") from e

    if isinstance(parsed, list):
        return DecodedResponse(ResponseShape.BARE_ARRAY, parsed)
    if isinstance(parsed, dict):
        if isinstance(parsed.get("quiz_questions"), list):
            return DecodedResponse(ResponseShape.WRAPPED, parsed["quiz_questions"])
        if isinstance(parsed.get("questions"), list):
            return DecodedResponse(ResponseShape.LEGACY, parsed["questions"])
    raise ResponseParseError(f"unrecognized response shape: {type(parsed).__name__}")


class GenerationState(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass
class GenerationRequest:
    study_set_id: int
    num_questions: int
    text: str = ""
    image_url: Optional[str] = None


@dataclass
class GenerationOutcome:
    state: GenerationState = GenerationState.IDLE
    attempts: int = 0
    source: Optional[str] = None
    shape: Optional[ResponseShape] = None
    accepted: List[RawQuestion] = field(default_factory=list)
    degraded: bool = False
    saved: int = 0
    skipped: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == GenerationState.SUCCESS


class QuizGenerator:
    def __init__(self, llm, repository, windows: Tuple[int, ...] = ATTEMPT_WINDOWS):
        self.llm = llm
        self.repository = repository
        self.windows = windows

    @property
    def max_attempts(self) -> int:
        return len(self.windows)

    def _accept(self, questions: List[RawQuestion], wanted: int, last_attempt: bool):
        """Apply the count policy. Returns (accepted batch or None, degraded)."""
        count = len(questions)
        if count == wanted:
            return questions, False
        if count > wanted:
            logger.info("quiz_batch_trimmed", received=count, wanted=wanted)
            return questions[:wanted], False
        if count > 0 and last_attempt:
            logger.warning("quiz_batch_short", received=count, wanted=wanted)
            return questions, True
        return None, False

    def _try_vision(self, request: GenerationRequest, outcome: GenerationOutcome) -> Optional[List[RawQuestion]]:
        try:
            decoded = decode_response(
                self.llm.generate_questions_from_image(request.image_url, request.num_questions)
            )
        except Exception as e:
            logger.warning("vision_generation_failed", error=str(e))
            AI_GENERATION_REQUESTS.labels(type="vision", status="error").inc()
            return None

        logger.info("vision_response_decoded", shape=decoded.shape.value, received=len(decoded.questions))
        batch, degraded = self._accept(decoded.questions, request.num_questions, last_attempt=True)
        if batch is None:
            AI_GENERATION_REQUESTS.labels(type="vision", status="empty").inc()
            return None
        outcome.degraded = degraded
        outcome.shape = decoded.shape
        AI_GENERATION_REQUESTS.labels(type="vision", status="success").inc()
        return batch

    def _run_text_attempts(self, request: GenerationRequest, outcome: GenerationOutcome) -> Optional[List[RawQuestion]]:
        for attempt, window in enumerate(self.windows, start=1):
            outcome.state = GenerationState.ATTEMPTING
            outcome.attempts = attempt
            content = request.text[:window]
            last_attempt = attempt == self.max_attempts
            logger.info("quiz_attempt_started", attempt=attempt, max_attempts=self.max_attempts, content_length=len(content))

            try:
                decoded = decode_response(self.llm.generate_questions(content, request.num_questions))
            except ResponseParseError as e:
                logger.warning("quiz_attempt_unparseable", attempt=attempt, error=str(e))
                AI_GENERATION_REQUESTS.labels(type="quiz", status="parse_error").inc()
                outcome.error = EXHAUSTED_MESSAGE
                continue
            except Exception as e:
                logger.warning("quiz_attempt_failed", attempt=attempt, error=str(e))
                AI_GENERATION_REQUESTS.labels(type="quiz", status="error").inc()
                outcome.error = f"Error calling OpenAI API: {e}"
                continue

            logger.info(
                "quiz_attempt_decoded", attempt=attempt, shape=decoded.shape.value, received=len(decoded.questions)
            )
            batch, degraded = self._accept(decoded.questions, request.num_questions, last_attempt)
            if batch is None:
                logger.warning(
                    "quiz_attempt_insufficient", attempt=attempt, received=len(decoded.questions),
                    wanted=request.num_questions,
                )
                AI_GENERATION_REQUESTS.labels(type="quiz", status="insufficient").inc()
                outcome.error = EXHAUSTED_MESSAGE
                continue

            outcome.degraded = degraded
            outcome.shape = decoded.shape
            AI_GENERATION_REQUESTS.labels(type="quiz", status="success").inc()
            return batch
        return None

    def _persist(self, request: GenerationRequest, batch: List[RawQuestion], outcome: GenerationOutcome) -> None:
        result = normalize_questions(
            batch, resolve_category=self.repository.find_or_create_category, image_url=request.image_url
        )
        outcome.skipped = result.skipped
        for question in result.questions:
            try:
                self.repository.save_question(request.study_set_id, question)
            except Exception as e:
                logger.error("question_save_failed", question=question.question[:30], error=str(e))
                continue
            outcome.saved += 1
            QUESTIONS_SAVED.inc()
        logger.info("quiz_questions_saved", saved=outcome.saved, received=len(batch), study_set=request.study_set_id)

    @log_performance("quiz_generation")
    def run(self, request: GenerationRequest) -> GenerationOutcome:
        outcome = GenerationOutcome()
        batch = None

        if request.image_url:
            batch = self._try_vision(request, outcome)
            if batch is not None:
                outcome.source = "vision"

        if batch is None and request.text:
            batch = self._run_text_attempts(request, outcome)
            if batch is not None:
                outcome.source = "text"

        if batch is None:
            outcome.state = GenerationState.EXHAUSTED
            if not request.text:
                outcome.error = NO_CONTENT_MESSAGE
            logger.error("quiz_generation_exhausted", attempts=outcome.attempts, error=outcome.error)
            return outcome

        outcome.state = GenerationState.SUCCESS
        outcome.accepted = batch
        self._persist(request, batch, outcome)
        return outcome


def start_soft_timeout(seconds: float = config.QUIZ_GENERATION_TIMEOUT_SECONDS, **context: Any) -> threading.Timer:
    """Log a warning if generation outlives `seconds`. Never cancels the work; caller cancels the timer."""
    timer = threading.Timer(seconds, lambda: logger.warning("quiz_generation_timeout", seconds=seconds, **context))
    timer.daemon = True
    timer.start()
    return timer
