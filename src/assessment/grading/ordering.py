"""
Ordering handler.

The response is a sequence of item ids. An item is in place when its
0-based index in that sequence equals correct_order - 1.
"""

from __future__ import annotations

from ..enums import QuestionType
from ..payloads import OrderingPayload, QuestionSpec, Response
from . import register
from .base import Evaluation, fraction_credit


@register(QuestionType.ORDERING)
class OrderingHandler:
    """Handler for ordering/sequencing questions."""

    def is_skipped(self, spec: QuestionSpec, response: Response) -> bool:
        return not response.ordering_answers

    def evaluate(self, spec: QuestionSpec, response: Response) -> Evaluation:
        payload: OrderingPayload = spec.payload
        sequence = response.ordering_answers or []

        right = 0
        for item in payload.items:
            if item.id in sequence and sequence.index(item.id) == item.correct_order - 1:
                right += 1

        total = len(payload.items)
        if right == total:
            return Evaluation(correct=True)
        return Evaluation(correct=False, partial_points=fraction_credit(spec, right, total))
