"""
Matching handler.

Each left-hand term must be paired with its key's right-hand value.
Partial credit is the share of correct pairs.
"""

from __future__ import annotations

from ..enums import QuestionType
from ..payloads import MatchingPayload, QuestionSpec, Response
from . import register
from .base import Evaluation, fraction_credit


@register(QuestionType.MATCHING)
class MatchingHandler:
    """Handler for matching questions."""

    def is_skipped(self, spec: QuestionSpec, response: Response) -> bool:
        return not response.matching_answers

    def evaluate(self, spec: QuestionSpec, response: Response) -> Evaluation:
        payload: MatchingPayload = spec.payload

        # First submission for a term wins if the client sent duplicates
        submitted: dict[str, str] = {}
        for pair in response.matching_answers or []:
            submitted.setdefault(pair.left, pair.right)

        right = sum(1 for pair in payload.pairs if submitted.get(pair.left) == pair.right)
        total = len(payload.pairs)

        if right == total:
            return Evaluation(correct=True)
        return Evaluation(correct=False, partial_points=fraction_credit(spec, right, total))
