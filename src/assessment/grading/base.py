"""
Base protocol and types for grading handlers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from ..enums import QuestionType
from ..payloads import QuestionSpec, Response


@dataclass
class Evaluation:
    """What a handler decided about a non-skipped response."""
    correct: bool
    partial_points: float | None = None  # set only when partial credit was awarded


@dataclass
class GradedAnswer:
    """One graded answer as stored in an attempt's answer snapshot."""
    question_id: int | None
    question_type: QuestionType
    response: Response = field(default_factory=Response)
    is_correct: bool = False
    is_partially_correct: bool = False
    is_skipped: bool = False
    points_earned: float = 0.0
    max_points: float = 0.0
    feedback: str = ""
    manual_grade: float | None = None
    manual_feedback: str | None = None

    @property
    def awaiting_manual_grade(self) -> bool:
        return self.question_type is QuestionType.ESSAY and self.manual_grade is None

    @property
    def is_incorrect(self) -> bool:
        return not (self.is_correct or self.is_partially_correct or self.is_skipped)

    @property
    def time_spent(self) -> float | None:
        return self.response.time_spent

    def to_dict(self) -> dict:
        return {
            "question_id": self.question_id,
            "question_type": self.question_type.value,
            "response": self.response.to_dict(),
            "is_correct": self.is_correct,
            "is_partially_correct": self.is_partially_correct,
            "is_skipped": self.is_skipped,
            "points_earned": self.points_earned,
            "max_points": self.max_points,
            "feedback": self.feedback,
            "manual_grade": self.manual_grade,
            "manual_feedback": self.manual_feedback,
        }

    @classmethod
    def from_dict(cls, data: dict) -> GradedAnswer:
        return cls(
            question_id=data.get("question_id"),
            question_type=QuestionType.parse(data["question_type"]),
            response=Response.from_dict(data.get("response")),
            is_correct=bool(data.get("is_correct", False)),
            is_partially_correct=bool(data.get("is_partially_correct", False)),
            is_skipped=bool(data.get("is_skipped", False)),
            points_earned=float(data.get("points_earned", 0)),
            max_points=float(data.get("max_points", 0)),
            feedback=data.get("feedback") or "",
            manual_grade=data.get("manual_grade"),
            manual_feedback=data.get("manual_feedback"),
        )


class GradingHandler(Protocol):
    """Protocol for question type handlers."""

    def is_skipped(self, spec: QuestionSpec, response: Response) -> bool:
        """True when the response carries nothing gradable for this type."""
        ...

    def evaluate(self, spec: QuestionSpec, response: Response) -> Evaluation:
        """Decide correctness (and partial credit, when enabled)."""
        ...


def fraction_credit(spec: QuestionSpec, right: int, total: int) -> float | None:
    """
    Proportional partial credit shared by the structured types.

    Only awarded when partial credit is enabled, at least one component
    is right, and the answer is not already fully correct.
    """
    if not spec.partial_credit or total == 0 or right == 0 or right == total:
        return None
    return right / total * spec.points
