"""
Typed-answer handlers: Short Answer and Fill in the Blank.

Both compare trimmed text against accepted answers, case-insensitively
unless the payload sets case_sensitive.
"""

from __future__ import annotations

from ..enums import QuestionType
from ..payloads import FillInBlankPayload, QuestionSpec, Response, ShortAnswerPayload
from . import register
from .base import Evaluation, fraction_credit


def _normalize(text: str | None, case_sensitive: bool) -> str:
    text = (text or "").strip()
    return text if case_sensitive else text.lower()


def matches_any(text: str | None, accepted: tuple[str, ...], case_sensitive: bool) -> bool:
    """True when text equals one of the accepted answers under the case rule."""
    candidate = _normalize(text, case_sensitive)
    return any(candidate == _normalize(a, case_sensitive) for a in accepted)


@register(QuestionType.SHORT_ANSWER)
class ShortAnswerHandler:
    """Handler for short free-text answers."""

    def is_skipped(self, spec: QuestionSpec, response: Response) -> bool:
        return not (response.selected_answer or "").strip()

    def evaluate(self, spec: QuestionSpec, response: Response) -> Evaluation:
        payload: ShortAnswerPayload = spec.payload
        return Evaluation(
            correct=matches_any(response.selected_answer, payload.accepted_answers, payload.case_sensitive)
        )


@register(QuestionType.FILL_IN_BLANK)
class FillInBlankHandler:
    """Handler for positional fill-in-the-blank answers."""

    def is_skipped(self, spec: QuestionSpec, response: Response) -> bool:
        return not any((b or "").strip() for b in response.fill_in_blanks or [])

    def evaluate(self, spec: QuestionSpec, response: Response) -> Evaluation:
        payload: FillInBlankPayload = spec.payload
        submitted = response.fill_in_blanks or []

        right = 0
        for index, blank in enumerate(payload.blanks):
            text = submitted[index] if index < len(submitted) else None
            if matches_any(text, blank.accepted_answers, payload.case_sensitive):
                right += 1

        total = len(payload.blanks)
        if right == total:
            return Evaluation(correct=True)
        return Evaluation(correct=False, partial_points=fraction_credit(spec, right, total))
