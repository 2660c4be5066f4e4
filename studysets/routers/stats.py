from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from studysets.db import get_session
from studysets.models import CategoryScore
from studysets.services.repository import QuizRepository, percentage


router = APIRouter(prefix="/api", tags=["stats"])


def category_score_payload(score: CategoryScore) -> dict:
    return {
        "category_name": score.category_name,
        "questions_right": score.questions_right,
        "questions_solved": score.questions_solved,
        "percentage": percentage(score.questions_right, score.questions_solved),
    }


@router.post("/scores/answer")
def record_answer(
    category: str,
    is_correct: bool = Query(..., alias="isCorrect"),
    study_set_id: Optional[int] = Query(None, alias="studySetId"),
    session: Session = Depends(get_session),
):
    repo = QuizRepository(session)
    if study_set_id is not None and not repo.get_study_set(study_set_id):
        raise HTTPException(status_code=404, detail="Study set not found")
    repo.record_answer(category, is_correct, study_set_id)
    return {"recorded": True, "category": category, "is_correct": is_correct, "study_set_id": study_set_id}


@router.get("/scores/study-sets/{study_set_id}")
def study_set_score(study_set_id: int, session: Session = Depends(get_session)):
    score = QuizRepository(session).get_study_set_score(study_set_id)
    right = score.questions_right if score else 0
    solved = score.questions_solved if score else 0
    return {
        "study_set_id": study_set_id,
        "questions_right": right,
        "questions_solved": solved,
        "percentage": percentage(right, solved),
    }


@router.get("/scores/categories")
def category_scores(names: List[str] = Query(default=[]), session: Session = Depends(get_session)):
    # accepts ?names=a&names=b as well as ?names=a,b
    wanted = [n.strip() for raw in names for n in raw.split(",") if n.strip()]
    return [category_score_payload(s) for s in QuizRepository(session).get_category_scores(wanted)]


@router.get("/stats")
def overall_stats(session: Session = Depends(get_session)):
    repo = QuizRepository(session)
    categories = [category_score_payload(s) for s in repo.all_category_scores()]
    study_sets = repo.study_set_scores_with_names()
    solved = sum(c["questions_solved"] for c in categories)
    right = sum(c["questions_right"] for c in categories)
    return {
        "categories": categories,
        "study_sets": study_sets,
        "total_solved": solved,
        "total_right": right,
        "overall_percentage": percentage(right, solved),
    }
