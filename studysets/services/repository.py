"""
Database access for study sets, questions, categories and scores
"""
import json
from typing import Dict, List, Optional

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, func, select

from studysets import config
from studysets.models import (
    Category,
    CategoryScore,
    QuizQuestion,
    StudyMaterial,
    StudySet,
    StudySetScore,
    Subject,
)
from studysets.services.cache import subject_cache_key
from studysets.services.normalizer import NormalizedQuestion

logger = structlog.get_logger()


class QuizRepository:
    def __init__(self, session: Session, llm=None, cache=None):
        self.session = session
        self.llm = llm
        self.cache = cache

    # ----------------- Categories -----------------

    def _infer_subject(self, category_name: str, question_text: str) -> Optional[str]:
        if self.llm is None:
            return None
        if self.cache is None:
            return self.llm.infer_subject(question_text, category_name)
        return self.cache.remember(
            subject_cache_key(category_name),
            lambda: self.llm.infer_subject(question_text, category_name),
            expire=config.SUBJECT_CACHE_TTL_SECONDS,
        )

    def _ensure_subject(self, subject: str) -> None:
        existing = self.session.exec(select(Subject).where(Subject.subject == subject)).first()
        if existing:
            return
        self.session.add(Subject(subject=subject))
        try:
            self.session.commit()
        except IntegrityError:
            # inserted concurrently by another writer
            self.session.rollback()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("subject_create_failed", subject=subject, error=str(e))

    def find_or_create_category(self, category_name: str, question_text: str = "") -> Optional[str]:
        """Return the stored category name, creating the row (and its subject) on first sight."""
        try:
            existing = self.session.exec(select(Category).where(Category.name == category_name)).first()
            if existing:
                return existing.name

            subject = self._infer_subject(category_name, question_text)
            if subject:
                self._ensure_subject(subject)

            category = Category(name=category_name, subject=subject)
            self.session.add(category)
            self.session.commit()
            logger.info("category_created", category=category_name, subject=subject)
            return category.name
        except IntegrityError:
            self.session.rollback()
            existing = self.session.exec(select(Category).where(Category.name == category_name)).first()
            if existing:
                logger.info("category_created_concurrently", category=category_name)
                return existing.name
            logger.error("category_create_failed", category=category_name, error="integrity error")
            return None
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("category_create_failed", category=category_name, error=str(e))
            return None

    def categories_with_counts(self) -> List[Dict]:
        counts = dict(
            self.session.exec(
                select(QuizQuestion.category, func.count(QuizQuestion.id))
                .where(QuizQuestion.category.is_not(None))
                .group_by(QuizQuestion.category)
            ).all()
        )
        categories = self.session.exec(select(Category).order_by(Category.name)).all()
        return [
            {
                "name": c.name,
                "subject": c.subject,
                "created_at": c.created_at.isoformat(),
                "question_count": counts.get(c.name, 0),
            }
            for c in categories
        ]

    def questions_for_category(self, category_name: str) -> List[QuizQuestion]:
        return self.session.exec(
            select(QuizQuestion)
            .where(QuizQuestion.category == category_name)
            .order_by(QuizQuestion.created_at.desc())
        ).all()

    # ----------------- Questions -----------------

    def save_question(self, study_set_id: int, question: NormalizedQuestion) -> QuizQuestion:
        row = QuizQuestion(
            study_set=study_set_id,
            question=question.question,
            options=json.dumps(question.options),
            answer=question.answer,
            category=question.category,
            explanation=question.explanation,
            related_material=question.related_material,
        )
        self.session.add(row)
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self.session.refresh(row)
        return row

    def list_questions(self, study_set_id: int) -> List[QuizQuestion]:
        return self.session.exec(
            select(QuizQuestion).where(QuizQuestion.study_set == study_set_id).order_by(QuizQuestion.id)
        ).all()

    def unlink_question(self, study_set_id: int, question_id: int) -> bool:
        """Detach a question from its study set; the row itself is kept for its category."""
        row = self.session.get(QuizQuestion, question_id)
        if not row or row.study_set != study_set_id:
            return False
        row.study_set = None
        self.session.add(row)
        self.session.commit()
        return True

    # ----------------- Study sets -----------------

    def create_study_set(self, name: Optional[str] = None) -> StudySet:
        study_set = StudySet(name=name)
        self.session.add(study_set)
        self.session.commit()
        self.session.refresh(study_set)
        return study_set

    def list_study_sets(self) -> List[StudySet]:
        return self.session.exec(select(StudySet).order_by(StudySet.created_at.desc())).all()

    def get_study_set(self, study_set_id: int) -> Optional[StudySet]:
        return self.session.get(StudySet, study_set_id)

    def rename_study_set(self, study_set_id: int, name: str) -> Optional[StudySet]:
        study_set = self.session.get(StudySet, study_set_id)
        if not study_set:
            return None
        study_set.name = name
        self.session.add(study_set)
        self.session.commit()
        self.session.refresh(study_set)
        return study_set

    def delete_study_set(self, study_set_id: int) -> bool:
        study_set = self.session.get(StudySet, study_set_id)
        if not study_set:
            return False
        for material in self.list_materials(study_set_id):
            self.session.delete(material)
        for question in self.list_questions(study_set_id):
            question.study_set = None
            self.session.add(question)
        score = self.session.get(StudySetScore, study_set_id)
        if score:
            self.session.delete(score)
        self.session.delete(study_set)
        self.session.commit()
        logger.info("study_set_deleted", study_set=study_set_id)
        return True

    # ----------------- Materials -----------------

    def add_material(self, study_set_id: int, file_path: str, file_name: Optional[str] = None,
                     file_type: Optional[str] = None) -> StudyMaterial:
        material = StudyMaterial(study_set=study_set_id, file_path=file_path, file_name=file_name, file_type=file_type)
        self.session.add(material)
        self.session.commit()
        self.session.refresh(material)
        return material

    def list_materials(self, study_set_id: int) -> List[StudyMaterial]:
        return self.session.exec(
            select(StudyMaterial).where(StudyMaterial.study_set == study_set_id).order_by(StudyMaterial.id)
        ).all()

    def delete_material(self, study_set_id: int, material_id: int) -> bool:
        material = self.session.get(StudyMaterial, material_id)
        if not material or material.study_set != study_set_id:
            return False
        self.session.delete(material)
        self.session.commit()
        return True

    # ----------------- Scores -----------------

    def record_answer(self, category_name: str, is_correct: bool, study_set_id: Optional[int] = None) -> None:
        """Bump the solved/right counters of the study set (when given) and of the category."""
        right = 1 if is_correct else 0

        if study_set_id is not None:
            score = self.session.get(StudySetScore, study_set_id)
            if score is None:
                score = StudySetScore(id=study_set_id)
            score.questions_solved += 1
            score.questions_right += right
            self.session.add(score)

        category_score = self.session.exec(
            select(CategoryScore).where(CategoryScore.category_name == category_name)
        ).first()
        if category_score is None:
            category_score = CategoryScore(category_name=category_name)
        category_score.questions_solved += 1
        category_score.questions_right += right
        self.session.add(category_score)

        self.session.commit()

    def get_study_set_score(self, study_set_id: int) -> Optional[StudySetScore]:
        return self.session.get(StudySetScore, study_set_id)

    def get_category_scores(self, names: List[str]) -> List[CategoryScore]:
        if not names:
            return []
        return self.session.exec(
            select(CategoryScore).where(CategoryScore.category_name.in_(names))
        ).all()

    def all_category_scores(self) -> List[CategoryScore]:
        """All category scores; categories with questions but no score row get a zeroed row first."""
        used = self.session.exec(
            select(QuizQuestion.category).where(QuizQuestion.category.is_not(None)).distinct()
        ).all()
        scored = set(self.session.exec(select(CategoryScore.category_name)).all())
        missing = [name for name in used if name and name not in scored]
        if missing:
            for name in missing:
                self.session.add(CategoryScore(category_name=name))
            try:
                self.session.commit()
                logger.info("placeholder_category_scores_created", count=len(missing))
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error("placeholder_category_scores_failed", error=str(e))

        return self.session.exec(
            select(CategoryScore).order_by(CategoryScore.questions_solved.desc())
        ).all()

    def study_set_scores_with_names(self) -> List[Dict]:
        rows = self.session.exec(
            select(StudySetScore, StudySet.name)
            .join(StudySet, StudySet.id == StudySetScore.id)
            .order_by(StudySetScore.questions_solved.desc())
        ).all()
        return [
            {
                "study_set_id": score.id,
                "name": name,
                "questions_right": score.questions_right,
                "questions_solved": score.questions_solved,
                "percentage": percentage(score.questions_right, score.questions_solved),
            }
            for score, name in rows
        ]


def percentage(right: int, solved: int) -> float:
    return round(right / solved * 100, 1) if solved else 0.0
