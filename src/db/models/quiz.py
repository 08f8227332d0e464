"""
Quiz models for quiz definitions, questions, sections and question banks.

Implements:
- Quiz: Quiz configuration, scheduling and certificate settings
- QuizSection: Ordered groups of questions inside a quiz
- QuestionBank: Reusable question collections not tied to one quiz
- QuizQuestion: Question with a type-specific JSON payload

The payload JSON shape is fixed by question_type; see
src/assessment/payloads.py for the variant of each type.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, Enum, Float, ForeignKey, Integer, JSON, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.assessment.enums import DifficultyLevel, QuestionType, QuizStatus

from .base import Base

if TYPE_CHECKING:
    from .attempt import QuizAttempt


def _enum(enum_cls) -> Enum:
    """Store enum values (the display strings), not member names."""
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=32,
    )


class Quiz(Base):
    """
    Quiz configuration.

    Defines:
    - Passing score, time limit and attempt limit
    - Publication status and optional schedule window
    - Question randomization and pool size
    - Certificate generation and partial credit defaults
    """

    __tablename__ = "quizzes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    policy_id: Mapped[int | None] = mapped_column(Integer, index=True)
    policy_title: Mapped[str | None] = mapped_column(String(255))
    category: Mapped[str] = mapped_column(String(100), default="General")
    difficulty_level: Mapped[DifficultyLevel] = mapped_column(
        _enum(DifficultyLevel), default=DifficultyLevel.MEDIUM
    )

    passing_score: Mapped[int] = mapped_column(Integer, default=70)
    time_limit_minutes: Mapped[int] = mapped_column(Integer, default=30)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    question_count: Mapped[int] = mapped_column(Integer, default=0)

    randomize_questions: Mapped[bool] = mapped_column(Boolean, default=True)
    randomize_options: Mapped[bool] = mapped_column(Boolean, default=False)
    show_correct_answers: Mapped[bool] = mapped_column(Boolean, default=True)
    show_explanations: Mapped[bool] = mapped_column(Boolean, default=True)
    allow_review: Mapped[bool] = mapped_column(Boolean, default=True)
    allow_partial_credit: Mapped[bool] = mapped_column(Boolean, default=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    status: Mapped[QuizStatus] = mapped_column(_enum(QuizStatus), default=QuizStatus.DRAFT)
    scheduled_start: Mapped[datetime | None] = mapped_column()
    scheduled_end: Mapped[datetime | None] = mapped_column()

    question_bank_id: Mapped[int | None] = mapped_column(
        ForeignKey("question_banks.id", ondelete="SET NULL")
    )
    question_pool_size: Mapped[int | None] = mapped_column(Integer)

    generate_certificate: Mapped[bool] = mapped_column(Boolean, default=False)

    # Cached aggregates, refreshed after each submission
    average_score: Mapped[float | None] = mapped_column(Float)
    completion_rate: Mapped[float | None] = mapped_column(Float)

    tags: Mapped[str | None] = mapped_column(Text)
    created_by_id: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    # Relationships
    questions: Mapped[List["QuizQuestion"]] = relationship(
        back_populates="quiz",
        order_by="QuizQuestion.question_order",
    )
    sections: Mapped[List["QuizSection"]] = relationship(
        back_populates="quiz",
        order_by="QuizSection.order",
    )
    attempts: Mapped[List["QuizAttempt"]] = relationship(back_populates="quiz")

    def __repr__(self) -> str:
        return f"<Quiz(id={self.id}, title={self.title!r}, status={self.status})>"


class QuizSection(Base):
    """Ordered section of a quiz; optionally draws a subset of its questions."""

    __tablename__ = "quiz_sections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_id: Mapped[int] = mapped_column(ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    order: Mapped[int] = mapped_column(Integer, default=1)
    randomize_within_section: Mapped[bool] = mapped_column(Boolean, default=False)
    questions_required: Mapped[int | None] = mapped_column(Integer)

    quiz: Mapped[Quiz] = relationship(back_populates="sections")


class QuestionBank(Base):
    """Reusable question collection."""

    __tablename__ = "question_banks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(String(100))
    tags: Mapped[str | None] = mapped_column(Text)
    question_count: Mapped[int] = mapped_column(Integer, default=0)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    created_by_id: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())


class QuizQuestion(Base):
    """
    Quiz question with a type-specific payload.

    partial_credit_enabled is tri-state: None inherits the quiz's
    allow_partial_credit flag.
    """

    __tablename__ = "quiz_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_id: Mapped[int | None] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"), index=True
    )
    question_bank_id: Mapped[int | None] = mapped_column(
        ForeignKey("question_banks.id", ondelete="SET NULL"), index=True
    )
    section_id: Mapped[int | None] = mapped_column(ForeignKey("quiz_sections.id", ondelete="SET NULL"))

    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[QuestionType] = mapped_column(_enum(QuestionType), nullable=False)
    question_image: Mapped[str | None] = mapped_column(Text)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # Feedback
    explanation: Mapped[str | None] = mapped_column(Text)
    correct_feedback: Mapped[str | None] = mapped_column(Text)
    incorrect_feedback: Mapped[str | None] = mapped_column(Text)
    partial_feedback: Mapped[str | None] = mapped_column(Text)
    hint: Mapped[str | None] = mapped_column(Text)

    # Scoring
    points: Mapped[float] = mapped_column(Float, default=10)
    partial_credit_enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    negative_marking: Mapped[bool] = mapped_column(Boolean, default=False)
    negative_points: Mapped[float | None] = mapped_column(Float)

    # Organization
    question_order: Mapped[int] = mapped_column(Integer, default=1)
    difficulty_level: Mapped[DifficultyLevel] = mapped_column(
        _enum(DifficultyLevel), default=DifficultyLevel.MEDIUM
    )
    category: Mapped[str | None] = mapped_column(String(100))
    tags: Mapped[str | None] = mapped_column(Text)
    time_limit_seconds: Mapped[int | None] = mapped_column(Integer)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)

    # Global counters across all attempts
    times_answered: Mapped[int] = mapped_column(Integer, default=0)
    times_correct: Mapped[int] = mapped_column(Integer, default=0)
    average_time: Mapped[float | None] = mapped_column(Float)

    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    quiz: Mapped[Optional[Quiz]] = relationship(back_populates="questions")

    def __repr__(self) -> str:
        return f"<QuizQuestion(id={self.id}, type={self.question_type}, order={self.question_order})>"
