from fastapi import APIRouter, Depends
from sqlmodel import Session

from studysets.db import get_session
from studysets.routers.study_sets import question_payload
from studysets.services.repository import QuizRepository


router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("")
def list_categories(session: Session = Depends(get_session)):
    return QuizRepository(session).categories_with_counts()


@router.get("/{name}/questions")
def category_questions(name: str, session: Session = Depends(get_session)):
    questions = QuizRepository(session).questions_for_category(name)
    return {"category": name, "count": len(questions), "questions": [question_payload(q) for q in questions]}
