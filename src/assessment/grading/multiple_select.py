"""
Multiple Select handler.

Fully correct only when the selected set equals the correct set. With
partial credit enabled, each matched key earns its share of the points and
each wrong selection costs negative_points, floored at zero.
"""

from __future__ import annotations

from ..enums import QuestionType
from ..payloads import MultipleSelectPayload, QuestionSpec, Response
from . import register
from .base import Evaluation


@register(QuestionType.MULTIPLE_SELECT)
class MultipleSelectHandler:
    """Handler for multiple-select questions."""

    def is_skipped(self, spec: QuestionSpec, response: Response) -> bool:
        return not response.selected_answers

    def evaluate(self, spec: QuestionSpec, response: Response) -> Evaluation:
        payload: MultipleSelectPayload = spec.payload
        correct = set(payload.correct_answers)
        selected = list(dict.fromkeys(response.selected_answers or []))

        matched = sum(1 for key in selected if key in correct)
        wrong = sum(1 for key in selected if key not in correct)

        if matched == len(correct) and wrong == 0:
            return Evaluation(correct=True)

        if spec.partial_credit and matched > 0:
            partial = matched / len(correct) * spec.points
            penalty = wrong * spec.negative_points
            return Evaluation(correct=False, partial_points=max(0.0, partial - penalty))

        return Evaluation(correct=False)
