"""
Single-answer choice handler.

Covers Multiple Choice, True/False and Image Choice: the selected option
key must equal the payload's correct_answer. No partial credit.
"""

from __future__ import annotations

from ..enums import QuestionType
from ..payloads import ChoicePayload, QuestionSpec, Response
from . import register
from .base import Evaluation


@register(QuestionType.MULTIPLE_CHOICE)
@register(QuestionType.TRUE_FALSE)
@register(QuestionType.IMAGE_CHOICE)
class ChoiceHandler:
    """Handler for single-answer choice questions."""

    def is_skipped(self, spec: QuestionSpec, response: Response) -> bool:
        return not response.selected_answer

    def evaluate(self, spec: QuestionSpec, response: Response) -> Evaluation:
        payload: ChoicePayload = spec.payload
        return Evaluation(correct=response.selected_answer == payload.correct_answer)
