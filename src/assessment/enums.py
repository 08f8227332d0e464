"""
Closed vocabularies for quizzes, questions and attempts.

Enum values are the display strings stored in the database and written
into CSV/JSON exports, so they must stay stable.
"""

from __future__ import annotations

from enum import Enum


class QuestionType(str, Enum):
    """Question types supported by the grading engine."""

    MULTIPLE_CHOICE = "Multiple Choice"
    TRUE_FALSE = "True/False"
    MULTIPLE_SELECT = "Multiple Select"
    SHORT_ANSWER = "Short Answer"
    FILL_IN_BLANK = "Fill in the Blank"
    MATCHING = "Matching"
    ORDERING = "Ordering"
    RATING_SCALE = "Rating Scale"
    ESSAY = "Essay"
    IMAGE_CHOICE = "Image Choice"
    HOTSPOT = "Hotspot"

    @classmethod
    def parse(cls, value: str | QuestionType) -> QuestionType:
        """
        Resolve a question type from its value or member name.

        Accepts "Multiple Choice", "MULTIPLE_CHOICE", "multiple_choice" and
        "MultipleChoice". Raises ValueError for anything else.
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text == member.value:
                return member
        squashed = text.replace("_", "").replace(" ", "").replace("/", "").lower()
        for member in cls:
            if squashed in (
                member.name.replace("_", "").lower(),
                member.value.replace(" ", "").replace("/", "").lower(),
            ):
                return member
        raise ValueError(f"Unknown question type: {value!r}")

    @property
    def is_choice(self) -> bool:
        return self in CHOICE_TYPES


CHOICE_TYPES = frozenset(
    {QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE, QuestionType.IMAGE_CHOICE}
)


class DifficultyLevel(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"
    EXPERT = "Expert"

    @classmethod
    def parse(cls, value: str | DifficultyLevel | None) -> DifficultyLevel:
        """Resolve a difficulty by value or name, defaulting to Medium when blank."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.MEDIUM
        text = str(value).strip().lower()
        for member in cls:
            if text in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown difficulty level: {value!r}")


class QuizStatus(str, Enum):
    DRAFT = "Draft"
    PUBLISHED = "Published"
    SCHEDULED = "Scheduled"
    ARCHIVED = "Archived"


class AttemptStatus(str, Enum):
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    ABANDONED = "Abandoned"
    EXPIRED = "Expired"
    PENDING_REVIEW = "Pending Review"


# Attempts that count against max_attempts and feed score statistics
SCORED_STATUSES = frozenset({AttemptStatus.COMPLETED, AttemptStatus.PENDING_REVIEW})
