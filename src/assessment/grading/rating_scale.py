"""
Rating scale handler.

Correct within the payload's tolerance. With partial credit, credit decays
linearly with distance across the whole scale range.
"""

from __future__ import annotations

from ..enums import QuestionType
from ..payloads import QuestionSpec, RatingScalePayload, Response
from . import register
from .base import Evaluation


@register(QuestionType.RATING_SCALE)
class RatingScaleHandler:
    """Handler for rating scale questions."""

    def is_skipped(self, spec: QuestionSpec, response: Response) -> bool:
        return response.rating_value is None

    def evaluate(self, spec: QuestionSpec, response: Response) -> Evaluation:
        payload: RatingScalePayload = spec.payload
        distance = abs(response.rating_value - payload.correct_rating)

        if distance <= payload.tolerance:
            return Evaluation(correct=True)

        scale_range = payload.scale_range
        if spec.partial_credit and distance < scale_range:
            return Evaluation(
                correct=False,
                partial_points=(scale_range - distance) / scale_range * spec.points,
            )
        return Evaluation(correct=False)
