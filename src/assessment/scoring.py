"""Rounding and percentage helpers shared by grading, attempts and analytics."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float, places: int = 0) -> float:
    """Round half away from zero for positives (2.5 -> 3), unlike built-in round()."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_points(value: float) -> float:
    """Points are stored with two decimal places."""
    return round_half_up(value, 2)


def compute_percentage(score: float, max_score: float) -> int:
    """Integer percentage of max_score, clamped into 0..100 (0 when max_score is 0)."""
    if max_score <= 0:
        return 0
    percentage = int(round_half_up(score / max_score * 100))
    return max(0, min(100, percentage))
