"""
Grading engine: one handler per question type.

Each handler module registers itself for one or more QuestionType values
and implements:
- is_skipped(): Whether the response is empty for this type
- evaluate(): Correctness and partial credit

grade_answer() wraps the handlers with the rules every type shares:
skipped answers, negative marking and two-decimal rounding.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..enums import QuestionType
from ..payloads import QuestionSpec, Response
from ..scoring import round_points
from .base import Evaluation, GradedAnswer

if TYPE_CHECKING:
    from .base import GradingHandler


# Handler registry - populated by @register decorator
HANDLERS: dict[QuestionType, "GradingHandler"] = {}


def register(question_type: QuestionType):
    """Decorator to register a grading handler."""
    def decorator(cls):
        HANDLERS[question_type] = cls()
        return cls
    return decorator


def get_handler(question_type: str | QuestionType) -> "GradingHandler | None":
    """Get the handler for a question type."""
    if isinstance(question_type, str) and not isinstance(question_type, QuestionType):
        try:
            question_type = QuestionType.parse(question_type)
        except ValueError:
            return None
    return HANDLERS.get(question_type)


def grade_answer(spec: QuestionSpec, response: Response | dict | None) -> GradedAnswer:
    """
    Grade a single response against its question.

    Pure and idempotent: the same (spec, response) pair always yields the
    same GradedAnswer.
    """
    if not isinstance(response, Response):
        response = Response.from_dict(response)

    handler = HANDLERS[spec.question_type]
    answer = GradedAnswer(
        question_id=spec.question_id,
        question_type=spec.question_type,
        response=response,
        max_points=spec.points,
    )

    if handler.is_skipped(spec, response):
        answer.is_skipped = True
        answer.feedback = spec.explanation
        return answer

    if spec.question_type is QuestionType.ESSAY:
        answer.feedback = "This question requires manual review."
        return answer

    result: Evaluation = handler.evaluate(spec, response)
    if result.correct:
        answer.is_correct = True
        answer.points_earned = spec.points
        answer.feedback = spec.correct_feedback
    elif result.partial_points is not None:
        answer.is_partially_correct = True
        answer.points_earned = result.partial_points
        answer.feedback = spec.partial_feedback
    else:
        answer.feedback = spec.incorrect_feedback
        if spec.negative_marking and spec.negative_points:
            answer.points_earned = -spec.negative_points

    answer.points_earned = round_points(answer.points_earned)
    answer.feedback = answer.feedback or spec.explanation
    return answer


# Import handlers to trigger registration
from . import choice
from . import multiple_select
from . import text_entry
from . import matching
from . import ordering
from . import rating_scale
from . import hotspot
from . import essay

__all__ = [
    "Evaluation",
    "GradedAnswer",
    "HANDLERS",
    "get_handler",
    "grade_answer",
    "register",
]
