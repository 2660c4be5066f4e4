from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import structlog
from openai import OpenAI
from pydantic import BaseModel, Field

from studysets import config

logger = structlog.get_logger()

QUIZ_SYSTEM_PROMPT = """You are a helpful assistant that creates educational quiz questions based on {source}.

*** CRITICAL INSTRUCTION: Create EXACTLY {n} multiple-choice questions. No more, no less. ***

Each question should:
- Be unique and test a different aspect of the content
- Have exactly 4 answer options that are CLEARLY DISTINCT from each other
- Have ONLY ONE correct answer; the other 3 must be plausible but definitively wrong
- Be based on actual information in the {source}

Format each question with these fields:
- question: The question text
- options: Array of 4 possible answers (substantially different from each other)
- answer: The EXACT text of the correct option (must match one of the options exactly)
- explanation: Why the answer is correct AND why the other options are incorrect
- category: A topic category this question belongs to{image_field}

DO NOT create duplicate questions or slight variations of the same question.
DO NOT create options that are variations of the same answer.

Your response must be a JSON object with a 'quiz_questions' array containing EXACTLY {n} questions."""

IMAGE_FIELD_PROMPT = (
    "\n- include_image: true if seeing the image is essential to answer the question, "
    "false if it can be answered without it"
)

QUIZ_USER_PROMPT = """Create EXACTLY {n} unique multiple-choice questions based on this content:

{content}

This is a strict requirement: exactly {n} questions, no more and no less.
Make sure the 'answer' field contains the exact text of the correct option.
Focus only on the document's actual content; don't reference the file format or metadata."""

VISION_USER_PROMPT = (
    "Analyze this image and create EXACTLY {n} unique multiple-choice questions about its content. "
    "Each question needs 4 clearly different options with ONLY ONE correct answer, and the 'answer' "
    "field must contain the exact text of the correct option. Set include_image to true only when "
    "the question cannot be answered without seeing the image. Focus only on the image's actual content."
)

SUBJECT_SYSTEM_PROMPT = """You categorize educational topics into university majors.
Given a quiz question and its category, determine which university major it most likely falls under.
Return only the name of the major without any explanation.
Examples:
- A question about linear algebra (category: Mathematics) -> Mathematics
- A question about the American Civil War (category: US History) -> History
- A question about Python programming (category: Programming) -> Computer Science
- A question about DNA replication (category: Biology) -> Biology"""

NAME_SYSTEM_PROMPT = """You generate concise and descriptive titles for study materials.
Create a brief (3-7 words) title for a study set based on the {source} content.
Do NOT use the phrase "Study Set" or "Study Guide" in your title.
Respond with ONLY the title - no explanations, quotes, or extra text."""

SURROUNDING_QUOTES_RE = re.compile(r"^[\"']|[\"']$")


class LLMNotConfigured(RuntimeError):
    pass


class QuizQuestionPayload(BaseModel):
    question: str = Field(description="The question text, should be unique and descriptive")
    options: List[str] = Field(description="Array of 4 possible answers as strings")
    answer: str = Field(description="The exact text of the correct option (must match one of the options exactly)")
    explanation: str = Field(description="Brief explanation of why the answer is correct")
    category: str = Field(description="A category or topic that this question belongs to")
    include_image: Optional[bool] = Field(
        default=None, description="Whether to include the original image with this question"
    )


class QuizQuestionsPayload(BaseModel):
    quiz_questions: List[QuizQuestionPayload]


def quiz_response_format(num_questions: int) -> Dict[str, Any]:
    schema = QuizQuestionsPayload.model_json_schema()
    schema["properties"]["quiz_questions"]["description"] = (
        f"Multiple-choice quiz questions (should be exactly {num_questions})"
    )
    return {"type": "json_schema", "json_schema": {"name": "quiz_questions", "schema": schema}}


def clean_json_like(content: str) -> str:
    # Strip common code fences ```json ... ``` or ``` ... ```
    text = content.strip()
    if text.startswith("```"):
        first_nl = text.find("\n")
        text = text[first_nl + 1:] if first_nl != -1 else text[3:]
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def _strip_quotes(text: str) -> str:
    return SURROUNDING_QUOTES_RE.sub("", text.strip())


class QuizLLM:
    """Thin wrapper around the hosted chat-completions API used by the quiz pipeline."""

    def __init__(
        self,
        client: OpenAI,
        quiz_model: str = config.QUIZ_MODEL,
        vision_model: str = config.VISION_MODEL,
        utility_model: str = config.UTILITY_MODEL,
    ):
        self.client = client
        self.quiz_model = quiz_model
        self.vision_model = vision_model
        self.utility_model = utility_model

    def _complete(self, **kwargs) -> str:
        rsp = self.client.chat.completions.create(**kwargs)
        return rsp.choices[0].message.content or ""

    def generate_questions(self, content: str, num_questions: int) -> str:
        """Return the raw JSON text of a structured quiz generation request."""
        return self._complete(
            model=self.quiz_model,
            messages=[
                {
                    "role": "system",
                    "content": QUIZ_SYSTEM_PROMPT.format(source="document content", n=num_questions, image_field=""),
                },
                {"role": "user", "content": QUIZ_USER_PROMPT.format(n=num_questions, content=content)},
            ],
            response_format=quiz_response_format(num_questions),
        )

    def generate_questions_from_image(self, image_url: str, num_questions: int) -> str:
        return self._complete(
            model=self.vision_model,
            messages=[
                {
                    "role": "system",
                    "content": QUIZ_SYSTEM_PROMPT.format(
                        source="image content", n=num_questions, image_field=IMAGE_FIELD_PROMPT
                    ),
                },
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": VISION_USER_PROMPT.format(n=num_questions)},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                },
            ],
            max_tokens=4000,
            response_format=quiz_response_format(num_questions),
        )

    def infer_subject(self, question_text: str, category_name: str) -> Optional[str]:
        """Best effort: the university major a category belongs to, or None."""
        try:
            subject = self._complete(
                model=self.utility_model,
                messages=[
                    {"role": "system", "content": SUBJECT_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": (
                            "What university major would this quiz question fall under?\n\n"
                            f'Question: "{question_text}"\nCategory: {category_name}\n\n'
                            "Respond with just the name of the major."
                        ),
                    },
                ],
                temperature=0.3,
                max_tokens=50,
            )
        except Exception as e:
            logger.warning("subject_inference_failed", category=category_name, error=str(e))
            return None

        subject = re.sub(r"['\".]", "", subject.strip())
        words = subject.split(" ")
        if len(words) > 4:
            subject = " ".join(words[:3])
        if not subject:
            return None
        logger.info("subject_inferred", subject=subject, category=category_name)
        return subject

    def generate_study_set_name(self, text: str) -> str:
        name = self._complete(
            model=self.utility_model,
            messages=[
                {"role": "system", "content": NAME_SYSTEM_PROMPT.format(source="document's")},
                {"role": "user", "content": f"Generate a title based on this document content:\n\n{text[:1000]}"},
            ],
            max_tokens=50,
            temperature=0.7,
        )
        return _strip_quotes(name)

    def generate_study_set_name_from_image(self, image_url: str) -> str:
        name = self._complete(
            model=self.vision_model,
            messages=[
                {"role": "system", "content": NAME_SYSTEM_PROMPT.format(source="image")},
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "text",
                            "text": "Generate a title based on this image content. Be specific about the visible content.",
                        },
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                },
            ],
            max_tokens=50,
            temperature=0.7,
        )
        return _strip_quotes(name)


def _get_client() -> OpenAI:
    if not config.OPENAI_API_KEY:
        raise LLMNotConfigured("OPENAI_API_KEY not set")
    # Use env var; set timeouts per-request via with_options()
    return OpenAI(api_key=config.OPENAI_API_KEY).with_options(timeout=config.LLM_TIMEOUT_SECONDS)


def get_llm() -> QuizLLM:
    """FastAPI dependency; tests override it with a scripted fake."""
    return QuizLLM(_get_client())
