"""
Record store for quizzes, questions, sections, banks, attempts and certificates.

The assessment services only touch the database through QuizRepository,
which wraps one SQLAlchemy session. Lookups that must succeed use the
``require_*`` methods and raise NotFound.
"""
from __future__ import annotations

from typing import List, Sequence

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from src.assessment.enums import AttemptStatus, DifficultyLevel, QuestionType, QuizStatus
from src.assessment.errors import NotFound
from src.db.models import (
    QuestionBank,
    Quiz,
    QuizAttempt,
    QuizCertificate,
    QuizQuestion,
    QuizSection,
)


class QuizRepository:
    """
    CRUD and filtered listing over the quiz tables.

    Handles:
    - Quiz, section and bank lookup and listing
    - Question lookup by quiz, bank or id list
    - Attempt and certificate lookup for users and quizzes
    """

    def __init__(self, session: Session):
        self.session = session

    def add(self, record):
        self.session.add(record)
        self.session.flush()
        return record

    def flush(self) -> None:
        self.session.flush()

    # ========================================
    # Quizzes
    # ========================================

    def get_quiz(self, quiz_id: int) -> Quiz | None:
        return self.session.get(Quiz, quiz_id)

    def require_quiz(self, quiz_id: int) -> Quiz:
        quiz = self.get_quiz(quiz_id)
        if quiz is None:
            raise NotFound("Quiz", quiz_id)
        return quiz

    def list_quizzes(
        self,
        status: QuizStatus | None = None,
        category: str | None = None,
        policy_id: int | None = None,
        include_archived: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> List[Quiz]:
        """List quizzes sorted by title, with optional filters."""
        query = select(Quiz)

        conditions = []
        if status is not None:
            conditions.append(Quiz.status == status)
        elif not include_archived:
            conditions.append(Quiz.status != QuizStatus.ARCHIVED)
        if category:
            conditions.append(Quiz.category == category)
        if policy_id is not None:
            conditions.append(Quiz.policy_id == policy_id)

        if conditions:
            query = query.where(and_(*conditions))

        query = query.order_by(Quiz.title, Quiz.id).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return list(self.session.execute(query).scalars().all())

    def quizzes_for_policy(self, policy_id: int) -> List[Quiz]:
        return self.list_quizzes(policy_id=policy_id)

    # ========================================
    # Questions
    # ========================================

    def get_question(self, question_id: int) -> QuizQuestion | None:
        return self.session.get(QuizQuestion, question_id)

    def require_question(self, question_id: int) -> QuizQuestion:
        question = self.get_question(question_id)
        if question is None:
            raise NotFound("Question", question_id)
        return question

    def quiz_questions(
        self,
        quiz_id: int,
        active_only: bool = True,
        limit: int | None = None,
    ) -> List[QuizQuestion]:
        """Questions of a quiz ordered by question_order."""
        query = select(QuizQuestion).where(QuizQuestion.quiz_id == quiz_id)
        if active_only:
            query = query.where(QuizQuestion.is_active.is_(True))
        query = query.order_by(QuizQuestion.question_order, QuizQuestion.id)
        if limit is not None:
            query = query.limit(limit)
        return list(self.session.execute(query).scalars().all())

    def questions_by_ids(self, question_ids: Sequence[int]) -> List[QuizQuestion]:
        """Fetch questions, preserving the order of ``question_ids``."""
        if not question_ids:
            return []
        rows = self.session.execute(
            select(QuizQuestion).where(QuizQuestion.id.in_(list(question_ids)))
        ).scalars().all()
        by_id = {q.id: q for q in rows}
        return [by_id[qid] for qid in question_ids if qid in by_id]

    def count_active_questions(self, quiz_id: int) -> int:
        return self.session.execute(
            select(func.count(QuizQuestion.id)).where(
                and_(QuizQuestion.quiz_id == quiz_id, QuizQuestion.is_active.is_(True))
            )
        ).scalar_one()

    def max_question_order(self, quiz_id: int) -> int:
        value = self.session.execute(
            select(func.max(QuizQuestion.question_order)).where(
                and_(QuizQuestion.quiz_id == quiz_id, QuizQuestion.is_active.is_(True))
            )
        ).scalar_one_or_none()
        return value or 0

    def bank_questions(
        self,
        bank_id: int,
        category: str | None = None,
        difficulty: DifficultyLevel | None = None,
        question_type: QuestionType | None = None,
        limit: int | None = None,
    ) -> List[QuizQuestion]:
        query = select(QuizQuestion).where(
            and_(QuizQuestion.question_bank_id == bank_id, QuizQuestion.is_active.is_(True))
        )

        conditions = []
        if category:
            conditions.append(QuizQuestion.category == category)
        if difficulty is not None:
            conditions.append(QuizQuestion.difficulty_level == difficulty)
        if question_type is not None:
            conditions.append(QuizQuestion.question_type == question_type)
        if conditions:
            query = query.where(and_(*conditions))

        query = query.order_by(QuizQuestion.id)
        if limit is not None:
            query = query.limit(limit)
        return list(self.session.execute(query).scalars().all())

    def count_bank_questions(self, bank_id: int) -> int:
        return self.session.execute(
            select(func.count(QuizQuestion.id)).where(
                and_(QuizQuestion.question_bank_id == bank_id, QuizQuestion.is_active.is_(True))
            )
        ).scalar_one()

    # ========================================
    # Sections and Banks
    # ========================================

    def get_section(self, section_id: int) -> QuizSection | None:
        return self.session.get(QuizSection, section_id)

    def quiz_sections(self, quiz_id: int) -> List[QuizSection]:
        return list(
            self.session.execute(
                select(QuizSection)
                .where(QuizSection.quiz_id == quiz_id)
                .order_by(QuizSection.order, QuizSection.id)
            ).scalars().all()
        )

    def get_bank(self, bank_id: int) -> QuestionBank | None:
        return self.session.get(QuestionBank, bank_id)

    def require_bank(self, bank_id: int) -> QuestionBank:
        bank = self.get_bank(bank_id)
        if bank is None:
            raise NotFound("QuestionBank", bank_id)
        return bank

    def list_banks(self, category: str | None = None, public_only: bool = False) -> List[QuestionBank]:
        query = select(QuestionBank)
        if category:
            query = query.where(QuestionBank.category == category)
        if public_only:
            query = query.where(QuestionBank.is_public.is_(True))
        return list(self.session.execute(query.order_by(QuestionBank.title)).scalars().all())

    # ========================================
    # Attempts
    # ========================================

    def get_attempt(self, attempt_id: int) -> QuizAttempt | None:
        return self.session.get(QuizAttempt, attempt_id)

    def require_attempt(self, attempt_id: int) -> QuizAttempt:
        attempt = self.get_attempt(attempt_id)
        if attempt is None:
            raise NotFound("Attempt", attempt_id)
        return attempt

    def user_attempts(self, quiz_id: int, user_id: str) -> List[QuizAttempt]:
        """All attempts by a user on a quiz, oldest first."""
        return list(
            self.session.execute(
                select(QuizAttempt)
                .where(and_(QuizAttempt.quiz_id == quiz_id, QuizAttempt.user_id == user_id))
                .order_by(QuizAttempt.attempt_number, QuizAttempt.id)
            ).scalars().all()
        )

    def quiz_attempts(self, quiz_id: int, statuses: Sequence[AttemptStatus] | None = None) -> List[QuizAttempt]:
        query = select(QuizAttempt).where(QuizAttempt.quiz_id == quiz_id)
        if statuses:
            query = query.where(QuizAttempt.status.in_(list(statuses)))
        return list(self.session.execute(query.order_by(QuizAttempt.id)).scalars().all())

    def user_history(
        self,
        user_id: str,
        statuses: Sequence[AttemptStatus],
        limit: int,
    ) -> List[QuizAttempt]:
        """A user's attempts across quizzes, newest first."""
        return list(
            self.session.execute(
                select(QuizAttempt)
                .where(and_(QuizAttempt.user_id == user_id, QuizAttempt.status.in_(list(statuses))))
                .order_by(QuizAttempt.start_time.desc(), QuizAttempt.id.desc())
                .limit(limit)
            ).scalars().all()
        )

    # ========================================
    # Certificates
    # ========================================

    def get_certificate(self, certificate_id: int) -> QuizCertificate | None:
        return self.session.get(QuizCertificate, certificate_id)

    def certificate_for_attempt(self, attempt_id: int) -> QuizCertificate | None:
        return self.session.execute(
            select(QuizCertificate).where(QuizCertificate.attempt_id == attempt_id)
        ).scalar_one_or_none()

    def user_certificates(self, user_id: str) -> List[QuizCertificate]:
        return list(
            self.session.execute(
                select(QuizCertificate)
                .where(QuizCertificate.user_id == user_id)
                .order_by(QuizCertificate.issued_date.desc(), QuizCertificate.id.desc())
            ).scalars().all()
        )
