"""
Essay handler.

Essays are never auto-graded. They earn nothing until a reviewer records a
manual grade on the attempt.
"""

from __future__ import annotations

from ..enums import QuestionType
from ..payloads import QuestionSpec, Response
from . import register
from .base import Evaluation


@register(QuestionType.ESSAY)
class EssayHandler:
    """Handler for essay questions."""

    def is_skipped(self, spec: QuestionSpec, response: Response) -> bool:
        return not (response.essay_text or "").strip()

    def evaluate(self, spec: QuestionSpec, response: Response) -> Evaluation:
        return Evaluation(correct=False)
