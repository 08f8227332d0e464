"""
Attempt models: a user's run through a quiz and the certificates it earns.

Implements:
- QuizAttempt: Served questions, graded answer snapshot and derived score
- QuizCertificate: One certificate per passed attempt
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.assessment.enums import AttemptStatus
from src.assessment.grading import GradedAnswer

from ..utils import utcnow
from .base import Base

if TYPE_CHECKING:
    from .quiz import Quiz


class QuizAttempt(Base):
    """
    One attempt by one user at one quiz.

    score, max_score, percentage and passed are derived from the answer
    snapshot; only the attempt manager writes them.
    """

    __tablename__ = "quiz_attempts"
    __table_args__ = (
        # At most one in-progress attempt per (quiz, user)
        Index(
            "uq_attempt_in_progress",
            "quiz_id",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'In Progress'"),
            postgresql_where=text("status = 'In Progress'"),
        ),
        Index("ix_attempt_user_quiz", "user_id", "quiz_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_id: Mapped[int] = mapped_column(ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    user_name: Mapped[str | None] = mapped_column(String(255))
    user_email: Mapped[str | None] = mapped_column(String(255))
    policy_id: Mapped[int | None] = mapped_column(Integer)

    attempt_number: Mapped[int] = mapped_column(Integer, default=1)
    status: Mapped[AttemptStatus] = mapped_column(
        Enum(
            AttemptStatus,
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            length=32,
        ),
        default=AttemptStatus.IN_PROGRESS,
    )
    start_time: Mapped[datetime] = mapped_column(default=utcnow)
    end_time: Mapped[datetime | None] = mapped_column()
    time_spent_minutes: Mapped[float | None] = mapped_column(Float)

    # Served question ids in served order
    question_ids: Mapped[list] = mapped_column(JSON, default=list)
    answers: Mapped[list] = mapped_column(JSON, default=list)

    score: Mapped[float] = mapped_column(Float, default=0)
    max_score: Mapped[float] = mapped_column(Float, default=0)
    percentage: Mapped[int] = mapped_column(Integer, default=0)
    passed: Mapped[bool] = mapped_column(Boolean, default=False)

    questions_answered: Mapped[int] = mapped_column(Integer, default=0)
    questions_correct: Mapped[int] = mapped_column(Integer, default=0)
    questions_partial: Mapped[int] = mapped_column(Integer, default=0)
    questions_incorrect: Mapped[int] = mapped_column(Integer, default=0)
    questions_skipped: Mapped[int] = mapped_column(Integer, default=0)

    requires_manual_review: Mapped[bool] = mapped_column(Boolean, default=False)
    reviewed_by_id: Mapped[str | None] = mapped_column(String(255))
    reviewed_at: Mapped[datetime | None] = mapped_column()

    certificate_generated: Mapped[bool] = mapped_column(Boolean, default=False)
    certificate_url: Mapped[str | None] = mapped_column(Text)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    quiz: Mapped["Quiz"] = relationship(back_populates="attempts")
    certificate: Mapped[Optional["QuizCertificate"]] = relationship(back_populates="attempt")

    def graded_answers(self) -> List[GradedAnswer]:
        return [GradedAnswer.from_dict(a) for a in self.answers or []]

    def set_answers(self, answers: List[GradedAnswer]) -> None:
        # Reassign so the JSON column is flagged dirty
        self.answers = [a.to_dict() for a in answers]

    def __repr__(self) -> str:
        return f"<QuizAttempt(id={self.id}, quiz={self.quiz_id}, user={self.user_id!r}, status={self.status})>"


class QuizCertificate(Base):
    """Certificate issued for a passed attempt."""

    __tablename__ = "quiz_certificates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    attempt_id: Mapped[int] = mapped_column(
        ForeignKey("quiz_attempts.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    quiz_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    user_name: Mapped[str | None] = mapped_column(String(255))
    quiz_title: Mapped[str | None] = mapped_column(String(255))
    certificate_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    score: Mapped[int] = mapped_column(Integer, default=0)
    passed_date: Mapped[datetime | None] = mapped_column()
    issued_date: Mapped[datetime] = mapped_column(default=utcnow)
    expiry_date: Mapped[datetime | None] = mapped_column()
    certificate_url: Mapped[str | None] = mapped_column(Text)

    attempt: Mapped[QuizAttempt] = relationship(back_populates="certificate")

    def __repr__(self) -> str:
        return f"<QuizCertificate(number={self.certificate_number!r}, attempt={self.attempt_id})>"
