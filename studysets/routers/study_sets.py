from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from studysets.db import get_session
from studysets.models import QuizQuestion
from studysets.services.repository import QuizRepository


router = APIRouter(prefix="/api/study-sets", tags=["study-sets"])


def question_payload(q: QuizQuestion) -> dict:
    return {
        "id": q.id,
        "study_set": q.study_set,
        "question": q.question,
        "options": q.option_list(),
        "answer": q.answer,
        "category": q.category,
        "explanation": q.explanation,
        "related_material": q.related_material,
        "created_at": q.created_at.isoformat(),
    }


def _require_study_set(repo: QuizRepository, study_set_id: int):
    study_set = repo.get_study_set(study_set_id)
    if not study_set:
        raise HTTPException(status_code=404, detail="Study set not found")
    return study_set


@router.post("")
def create_study_set(name: Optional[str] = None, session: Session = Depends(get_session)):
    return QuizRepository(session).create_study_set(name)


@router.get("")
def list_study_sets(session: Session = Depends(get_session)):
    return QuizRepository(session).list_study_sets()


@router.get("/{study_set_id}")
def get_study_set(study_set_id: int, session: Session = Depends(get_session)):
    repo = QuizRepository(session)
    study_set = _require_study_set(repo, study_set_id)
    return {
        "id": study_set.id,
        "name": study_set.name,
        "created_at": study_set.created_at.isoformat(),
        "question_count": len(repo.list_questions(study_set_id)),
        "materials": repo.list_materials(study_set_id),
    }


@router.patch("/{study_set_id}")
def rename_study_set(study_set_id: int, name: str, session: Session = Depends(get_session)):
    study_set = QuizRepository(session).rename_study_set(study_set_id, name)
    if not study_set:
        raise HTTPException(status_code=404, detail="Study set not found")
    return study_set


@router.delete("/{study_set_id}")
def delete_study_set(study_set_id: int, session: Session = Depends(get_session)):
    if not QuizRepository(session).delete_study_set(study_set_id):
        raise HTTPException(status_code=404, detail="Study set not found")
    return {"deleted": True, "id": study_set_id}


# ----------------- Questions -----------------

@router.get("/{study_set_id}/questions")
def list_questions(study_set_id: int, session: Session = Depends(get_session)):
    repo = QuizRepository(session)
    _require_study_set(repo, study_set_id)
    return [question_payload(q) for q in repo.list_questions(study_set_id)]


@router.delete("/{study_set_id}/questions/{question_id}")
def unlink_question(study_set_id: int, question_id: int, session: Session = Depends(get_session)):
    if not QuizRepository(session).unlink_question(study_set_id, question_id):
        raise HTTPException(status_code=404, detail="Question not found in study set")
    return {"unlinked": True, "id": question_id}


# ----------------- Materials -----------------

@router.post("/{study_set_id}/materials")
def add_material(
    study_set_id: int,
    file_path: str,
    file_name: Optional[str] = None,
    file_type: Optional[str] = None,
    session: Session = Depends(get_session),
):
    repo = QuizRepository(session)
    _require_study_set(repo, study_set_id)
    return repo.add_material(study_set_id, file_path, file_name, file_type)


@router.get("/{study_set_id}/materials")
def list_materials(study_set_id: int, session: Session = Depends(get_session)):
    repo = QuizRepository(session)
    _require_study_set(repo, study_set_id)
    return repo.list_materials(study_set_id)


@router.delete("/{study_set_id}/materials/{material_id}")
def delete_material(study_set_id: int, material_id: int, session: Session = Depends(get_session)):
    if not QuizRepository(session).delete_material(study_set_id, material_id):
        raise HTTPException(status_code=404, detail="Material not found")
    return {"deleted": True, "id": material_id}
