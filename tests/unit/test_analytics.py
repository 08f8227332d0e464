"""
Unit tests for quiz statistics and question analytics.

Run: pytest tests/unit/test_analytics.py -v
"""

from types import SimpleNamespace

import pytest

from src.assessment.analytics import (
    compute_question_analytics,
    compute_quiz_statistics,
    improvement_areas,
    median_score,
    score_distribution,
)
from src.assessment.enums import AttemptStatus, QuestionType
from src.assessment.grading import GradedAnswer
from src.assessment.payloads import Response


def attempt(user_id, status, percentage=0, passed=False, minutes=10, answers=()):
    return SimpleNamespace(
        user_id=user_id,
        status=status,
        percentage=percentage,
        passed=passed,
        time_spent_minutes=minutes,
        graded_answers=lambda: list(answers),
    )


def answer(question_id=1, **flags):
    return GradedAnswer(
        question_id=question_id,
        question_type=flags.pop("question_type", QuestionType.MULTIPLE_CHOICE),
        response=flags.pop("response", Response()),
        max_points=10,
        **flags,
    )


class TestMedian:
    def test_odd_count_takes_middle(self):
        assert median_score([80, 40, 60]) == 60

    def test_even_count_takes_upper_middle(self):
        assert median_score([40, 60, 80, 100]) == 80

    def test_empty(self):
        assert median_score([]) == 0


class TestDistribution:
    def test_buckets_are_half_open_except_last(self):
        counts = {b["range"]: b["count"] for b in score_distribution([0, 19, 20, 79, 80, 100])}
        assert counts == {"0-20%": 2, "20-40%": 1, "40-60%": 0, "60-80%": 1, "80-100%": 2}


class TestQuizStatistics:
    def test_empty_quiz(self):
        stats = compute_quiz_statistics([])
        assert stats.total_attempts == 0
        assert len(stats.score_distribution) == 5

    def test_scored_population_excludes_unfinished(self):
        stats = compute_quiz_statistics(
            [
                attempt("u1", AttemptStatus.COMPLETED, 90, passed=True, minutes=12),
                attempt("u1", AttemptStatus.COMPLETED, 50, minutes=9),
                attempt("u2", AttemptStatus.PENDING_REVIEW, 40, minutes=20),
                attempt("u3", AttemptStatus.ABANDONED),
            ]
        )
        assert stats.total_attempts == 4
        assert stats.unique_users == 3
        assert stats.passed_attempts == 1
        assert stats.failed_attempts == 2
        assert stats.pending_review == 1
        assert stats.average_score == 60
        assert stats.median_score == 50
        assert stats.highest_score == 90
        assert stats.lowest_score == 40
        assert stats.completion_rate == 75
        assert stats.pass_rate == 33
        assert stats.average_time_spent == 14
        assert stats.average_attempts_per_user == pytest.approx(4 / 3)

    def test_averages_round_half_up(self):
        stats = compute_quiz_statistics(
            [
                attempt("u1", AttemptStatus.COMPLETED, 50),
                attempt("u2", AttemptStatus.COMPLETED, 51),
            ]
        )
        assert stats.average_score == 51


class TestQuestionAnalytics:
    def test_rates_over_completed_attempts(self):
        question = SimpleNamespace(id=1, question_text="Which PPE?", question_type=QuestionType.MULTIPLE_CHOICE)
        attempts = [
            attempt("u1", AttemptStatus.COMPLETED, answers=[answer(is_correct=True, points_earned=10)]),
            attempt("u2", AttemptStatus.COMPLETED, answers=[answer(response=Response(selected_answer="A"))]),
            attempt("u3", AttemptStatus.COMPLETED, answers=[answer(response=Response(selected_answer="A"))]),
            attempt("u4", AttemptStatus.COMPLETED, answers=[answer(is_skipped=True)]),
            # Not yet graded: ignored
            attempt("u5", AttemptStatus.PENDING_REVIEW, answers=[answer(is_correct=True, points_earned=10)]),
        ]
        result = compute_question_analytics(question, attempts)
        assert result.times_answered == 4
        assert result.correct_rate == 25
        assert result.incorrect_rate == 50
        assert result.skipped_rate == 25
        assert result.difficulty_index == 0.25
        assert result.discrimination_index == -0.25
        assert result.average_score == 2.5
        assert result.common_wrong_answers == [{"answer": "A", "count": 2}]
        assert result.question_type == "Multiple Choice"


class TestImprovementAreas:
    def test_top_three_missed_categories(self):
        answers = [
            answer(1),
            answer(2),
            answer(3),
            answer(4),
            answer(5, is_correct=True),
            answer(6),
            answer(7, is_partially_correct=True),
        ]
        categories = {1: "Fire", 2: "Fire", 3: "PPE", 4: "Ladders", 5: "Noise", 6: "Fire", 7: "Noise"}
        assert improvement_areas(answers, categories) == ["Fire", "PPE", "Ladders"]

    def test_uncategorised_questions_ignored(self):
        assert improvement_areas([answer(1)], {1: None}) == []
