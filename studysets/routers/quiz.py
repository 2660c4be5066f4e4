import os
from datetime import date
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlmodel import Session

from studysets import config
from studysets.db import get_session
from studysets.middleware.rate_limit import ai_generation_limit
from studysets.services.cache import cache
from studysets.services.documents import (
    DocumentExtractionError,
    extract_text,
    is_heic_file,
    is_image_file,
    is_office_document,
)
from studysets.services.llm import QuizLLM, get_llm
from studysets.services.monitoring import AI_GENERATION_REQUESTS
from studysets.services.quiz_generator import GenerationRequest, QuizGenerator, start_soft_timeout
from studysets.services.repository import QuizRepository


router = APIRouter(prefix="/api", tags=["generation"])
logger = structlog.get_logger()


def clamp_num_questions(value: Optional[str]) -> int:
    try:
        n = int(value) if value not in (None, "") else config.DEFAULT_NUM_QUESTIONS
    except (TypeError, ValueError):
        n = config.DEFAULT_NUM_QUESTIONS
    return max(1, min(n, config.MAX_NUM_QUESTIONS))


def _parse_study_set_id(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value else None
    except ValueError:
        return None


def _upload_text(file: UploadFile, data: bytes) -> str:
    try:
        return extract_text(data, file.filename or "", file.content_type or "")
    except DocumentExtractionError as e:
        logger.warning("upload_text_unavailable", filename=file.filename, error=str(e))
        return ""


@router.post("/generate-quiz")
@ai_generation_limit()
def generate_quiz(
    request: Request,
    file: Optional[UploadFile] = File(None),
    studySetId: Optional[str] = Form(None),
    numQuestions: Optional[str] = Form(None),
    fileName: Optional[str] = Form(None),
    fileType: Optional[str] = Form(None),
    fileUrl: Optional[str] = Form(None),
    fileContent: Optional[str] = Form(None),
    session: Session = Depends(get_session),
    llm: QuizLLM = Depends(get_llm),
):
    study_set_id = _parse_study_set_id(studySetId)
    if study_set_id is None:
        return JSONResponse(status_code=400, content={"error": "Study set ID is required"})
    if file is None and not fileUrl and not fileContent:
        return JSONResponse(status_code=400, content={"error": "No content provided to generate quiz"})

    repo = QuizRepository(session, llm=llm, cache=cache)
    if repo.get_study_set(study_set_id) is None:
        logger.warning("quiz_generation_unknown_study_set", study_set=study_set_id)
        return JSONResponse(status_code=404, content={"error": "Study set not found"})

    file_name = file.filename if file is not None else (fileName or "")
    file_type = file.content_type if file is not None else (fileType or "")
    num_questions = clamp_num_questions(numQuestions)

    image_url = fileUrl if fileUrl and is_image_file(file_type or "", file_name) else None
    text = fileContent or ""
    if not text and file is not None:
        text = _upload_text(file, file.file.read())

    logger.info(
        "quiz_generation_requested",
        study_set=study_set_id,
        file_name=file_name,
        file_type=file_type,
        num_questions=num_questions,
        content_length=len(text),
        has_image=bool(image_url),
    )

    generator = QuizGenerator(llm, repo)
    timer = start_soft_timeout(study_set=study_set_id)
    try:
        outcome = generator.run(
            GenerationRequest(study_set_id=study_set_id, num_questions=num_questions, text=text, image_url=image_url)
        )
    except Exception as e:
        logger.error("quiz_generation_failed", study_set=study_set_id, error=str(e))
        return JSONResponse(status_code=500, content={"error": f"Failed to generate quiz: {e}"})
    finally:
        timer.cancel()

    if not outcome.succeeded:
        return JSONResponse(status_code=500, content={"error": outcome.error})

    message = "Quiz generated successfully from image" if outcome.source == "vision" else "Quiz generated successfully"
    return {"success": True, "message": message, "count": outcome.saved}


def fallback_name() -> str:
    return f"Study Set - {date.today().strftime('%m/%d/%Y')}"


@router.post("/generate-name")
@ai_generation_limit()
def generate_name(
    request: Request,
    file: Optional[UploadFile] = File(None),
    fileUrl: Optional[str] = Form(None),
    llm: QuizLLM = Depends(get_llm),
):
    if file is None:
        return JSONResponse(status_code=400, content={"error": "File is required"})

    file_name = file.filename or ""
    content_type = file.content_type or ""

    if is_office_document(content_type, file_name):
        return {"name": os.path.splitext(file_name)[0]}

    try:
        if is_image_file(content_type, file_name):
            if is_heic_file(content_type, file_name):
                logger.info("heic_upload_used_as_is", filename=file_name)
            if fileUrl:
                try:
                    name = llm.generate_study_set_name_from_image(fileUrl)
                    if name:
                        AI_GENERATION_REQUESTS.labels(type="name_vision", status="success").inc()
                        return {"name": name}
                except Exception as e:
                    logger.warning("image_naming_failed", filename=file_name, error=str(e))
                    AI_GENERATION_REQUESTS.labels(type="name_vision", status="error").inc()

        text = _upload_text(file, file.file.read())
        if len(text) < 50:
            logger.info("name_fallback_insufficient_text", filename=file_name, characters=len(text))
            return {"name": fallback_name()}

        name = llm.generate_study_set_name(text) or fallback_name()
        AI_GENERATION_REQUESTS.labels(type="name", status="success").inc()
        return {"name": name}
    except Exception as e:
        logger.error("name_generation_failed", filename=file_name, error=str(e))
        AI_GENERATION_REQUESTS.labels(type="name", status="error").inc()
        return JSONResponse(status_code=500, content={"error": "Failed to generate name", "name": fallback_name()})
