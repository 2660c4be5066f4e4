from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import List, Optional

from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StudySet(SQLModel, table=True):
    __tablename__ = "study_sets"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class StudyMaterial(SQLModel, table=True):
    __tablename__ = "study_materials"

    id: Optional[int] = Field(default=None, primary_key=True)
    study_set: int = Field(foreign_key="study_sets.id", index=True)
    file_path: str
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class Subject(SQLModel, table=True):
    __tablename__ = "subjects"

    id: Optional[int] = Field(default=None, primary_key=True)
    subject: str = Field(index=True, unique=True)


class Category(SQLModel, table=True):
    __tablename__ = "categories"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    subject: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class QuizQuestion(SQLModel, table=True):
    __tablename__ = "quiz_questions"

    id: Optional[int] = Field(default=None, primary_key=True)
    # null once the question has been unlinked from its study set
    study_set: Optional[int] = Field(default=None, foreign_key="study_sets.id", index=True)
    question: str
    options: str = Field(description="JSON encoded list of option strings")
    answer: str
    category: Optional[str] = Field(default=None, index=True)
    explanation: str = ""
    related_material: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    def option_list(self) -> List[str]:
        try:
            value = json.loads(self.options)
        except (TypeError, ValueError):
            return []
        return [str(o) for o in value] if isinstance(value, list) else []


class CategoryScore(SQLModel, table=True):
    __tablename__ = "category_scores"

    id: Optional[int] = Field(default=None, primary_key=True)
    category_name: str = Field(index=True, unique=True)
    questions_right: int = 0
    questions_solved: int = 0
    created_at: datetime = Field(default_factory=utc_now)


class StudySetScore(SQLModel, table=True):
    __tablename__ = "study_set_scores"

    # keyed by the study set it scores
    id: int = Field(primary_key=True, foreign_key="study_sets.id")
    questions_right: int = 0
    questions_solved: int = 0
    created_at: datetime = Field(default_factory=utc_now)
