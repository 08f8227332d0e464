"""
Unit tests for rounding and percentage helpers.

Run: pytest tests/unit/test_scoring.py -v
"""

import pytest

from src.assessment.scoring import compute_percentage, round_half_up, round_points


class TestRounding:
    @pytest.mark.parametrize("value, expected", [(2.5, 3), (3.5, 4), (2.49, 2), (0.5, 1)])
    def test_half_rounds_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_points_keep_two_decimals(self):
        assert round_points(6.665) == 6.67
        assert round_points(10 / 3) == 3.33


class TestPercentage:
    @pytest.mark.parametrize(
        "score, max_score, expected",
        [
            (10, 10, 100),
            (0, 10, 0),
            (2, 3, 67),
            (1, 8, 13),
            (-5, 10, 0),
            (12, 10, 100),
            (5, 0, 0),
        ],
    )
    def test_percentage(self, score, max_score, expected):
        assert compute_percentage(score, max_score) == expected
