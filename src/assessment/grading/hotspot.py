"""
Hotspot handler.

The clicked point is tested against the question's rectangular regions in
order; the first region containing it (edges inclusive) decides.
"""

from __future__ import annotations

from ..enums import QuestionType
from ..payloads import HotspotPayload, QuestionSpec, Response
from . import register
from .base import Evaluation


@register(QuestionType.HOTSPOT)
class HotspotHandler:
    """Handler for image hotspot questions."""

    def is_skipped(self, spec: QuestionSpec, response: Response) -> bool:
        return response.hotspot is None

    def evaluate(self, spec: QuestionSpec, response: Response) -> Evaluation:
        payload: HotspotPayload = spec.payload
        x, y = response.hotspot
        region = next((r for r in payload.regions if r.contains(x, y)), None)
        return Evaluation(correct=bool(region and region.is_correct))
