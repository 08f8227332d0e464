"""
Quiz and question analytics.

compute_quiz_statistics() and compute_question_analytics() are pure
functions over attempt records. AnalyticsAggregator owns the write side:
the per-question counters and the quiz's cached aggregates, refreshed
after every submission.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Sequence

from loguru import logger

from .enums import SCORED_STATUSES, AttemptStatus
from .grading import GradedAnswer
from .scoring import round_half_up

SCORE_BUCKETS = (
    ("0-20%", 0, 20),
    ("20-40%", 20, 40),
    ("40-60%", 40, 60),
    ("60-80%", 60, 80),
    ("80-100%", 80, 101),
)


# ========================================
# Result Types
# ========================================


@dataclass
class QuestionAnalytics:
    """Per-question analytics over completed attempts."""
    question_id: int
    question_text: str
    question_type: str
    times_answered: int = 0
    correct_rate: float = 0.0
    partial_rate: float = 0.0
    incorrect_rate: float = 0.0
    skipped_rate: float = 0.0
    average_time: float = 0.0
    average_score: float = 0.0
    # Simplified (correct - incorrect) / answered; not the classic upper/lower group index
    discrimination_index: float = 0.0
    difficulty_index: float = 0.0
    common_wrong_answers: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class QuizStatistics:
    """Aggregate statistics for one quiz."""
    total_attempts: int = 0
    unique_users: int = 0
    passed_attempts: int = 0
    failed_attempts: int = 0
    pending_review: int = 0
    average_score: int = 0
    median_score: int = 0
    highest_score: int = 0
    lowest_score: int = 0
    average_time_spent: int = 0
    completion_rate: int = 0
    pass_rate: int = 0
    average_attempts_per_user: float = 0.0
    score_distribution: List[Dict[str, Any]] = field(default_factory=list)
    question_analytics: List[QuestionAnalytics] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


# ========================================
# Pure Computation
# ========================================


def median_score(scores: Iterable[int]) -> int:
    """Element at floor(n/2) of the ascending scores; no averaging for even n."""
    ordered = sorted(scores)
    if not ordered:
        return 0
    return ordered[len(ordered) // 2]


def score_distribution(scores: Iterable[int]) -> List[Dict[str, Any]]:
    scores = list(scores)
    return [
        {"range": label, "count": sum(1 for s in scores if low <= s < high)}
        for label, low, high in SCORE_BUCKETS
    ]


def compute_quiz_statistics(attempts: Sequence[Any]) -> QuizStatistics:
    """
    Aggregate statistics over every attempt on a quiz.

    Completed and Pending Review attempts form the scoring population;
    abandoned, expired and in-progress attempts only count toward
    total_attempts and unique_users.
    """
    attempts = list(attempts)
    if not attempts:
        return QuizStatistics(score_distribution=score_distribution([]))

    scored = [a for a in attempts if a.status in SCORED_STATUSES]
    passed = [a for a in scored if a.passed]
    unique_users = len({a.user_id for a in attempts})

    scores = sorted(int(a.percentage or 0) for a in scored)
    times = [float(a.time_spent_minutes or 0) for a in scored]

    def mean(values: List[float]) -> float:
        return sum(values) / len(values) if values else 0.0

    return QuizStatistics(
        total_attempts=len(attempts),
        unique_users=unique_users,
        passed_attempts=len(passed),
        failed_attempts=len(scored) - len(passed),
        pending_review=sum(1 for a in attempts if a.status == AttemptStatus.PENDING_REVIEW),
        average_score=int(round_half_up(mean(scores))),
        median_score=median_score(scores),
        highest_score=max(scores) if scores else 0,
        lowest_score=min(scores) if scores else 0,
        average_time_spent=int(round_half_up(mean(times))),
        completion_rate=int(round_half_up(len(scored) / len(attempts) * 100)),
        pass_rate=int(round_half_up(len(passed) / len(scored) * 100)) if scored else 0,
        average_attempts_per_user=len(attempts) / unique_users if unique_users else 0.0,
        score_distribution=score_distribution(scores),
    )


def compute_question_analytics(question: Any, attempts: Sequence[Any]) -> QuestionAnalytics:
    """
    Analytics for one question over the Completed attempts that served it.

    Pending Review attempts are left out until their essays are graded.
    """
    analytics = QuestionAnalytics(
        question_id=question.id,
        question_text=(question.question_text or "")[:100],
        question_type=getattr(question.question_type, "value", question.question_type),
    )

    correct = partial = incorrect = skipped = 0
    total_time = 0.0
    total_score = 0.0
    wrong_answers: Counter[str] = Counter()

    for attempt in attempts:
        if attempt.status != AttemptStatus.COMPLETED:
            continue
        answer = next(
            (a for a in attempt.graded_answers() if a.question_id == question.id),
            None,
        )
        if answer is None:
            continue

        analytics.times_answered += 1
        total_score += answer.points_earned
        total_time += answer.time_spent or 0

        if answer.is_correct:
            correct += 1
        elif answer.is_partially_correct:
            partial += 1
        elif answer.is_skipped:
            skipped += 1
        else:
            incorrect += 1
            wrong_answers[answer.response.describe()] += 1

    answered = analytics.times_answered
    if answered:
        analytics.correct_rate = correct / answered * 100
        analytics.partial_rate = partial / answered * 100
        analytics.incorrect_rate = incorrect / answered * 100
        analytics.skipped_rate = skipped / answered * 100
        analytics.average_time = total_time / answered
        analytics.average_score = total_score / answered
        analytics.discrimination_index = (correct - incorrect) / answered
        analytics.difficulty_index = correct / answered
    analytics.common_wrong_answers = [
        {"answer": text, "count": count} for text, count in wrong_answers.most_common(5)
    ]
    return analytics


def improvement_areas(answers: Iterable[GradedAnswer], categories: Dict[int, str | None]) -> List[str]:
    """Top three categories among questions answered neither fully nor partially right."""
    misses: Counter[str] = Counter()
    for answer in answers:
        if answer.is_correct or answer.is_partially_correct:
            continue
        category = categories.get(answer.question_id)
        if category:
            misses[category] += 1
    return [category for category, _ in misses.most_common(3)]


# ========================================
# Write Side
# ========================================


class AnalyticsAggregator:
    """
    Maintains stored analytics after each submission.

    Handles:
    - Question counters (times_answered, times_correct, average_time)
    - Quiz cached aggregates (average_score, completion_rate)
    - Read-side statistics for a quiz
    """

    def __init__(self, repo):
        self.repo = repo

    def record_submission(self, quiz: Any, answers: Sequence[GradedAnswer]) -> None:
        """Fold one submission into question counters and quiz aggregates."""
        questions = {q.id: q for q in self.repo.questions_by_ids([a.question_id for a in answers])}
        for answer in answers:
            question = questions.get(answer.question_id)
            if question is None:
                continue
            times_answered = (question.times_answered or 0) + 1
            question.times_answered = times_answered
            question.times_correct = (question.times_correct or 0) + (1 if answer.is_correct else 0)
            if answer.time_spent:
                previous = question.average_time or 0
                question.average_time = (previous * (times_answered - 1) + answer.time_spent) / times_answered

        self.refresh_quiz_aggregates(quiz)

    def refresh_quiz_aggregates(self, quiz: Any) -> None:
        self.repo.flush()
        stats = compute_quiz_statistics(self.repo.quiz_attempts(quiz.id))
        quiz.average_score = stats.average_score
        quiz.completion_rate = stats.completion_rate
        logger.debug(
            f"Quiz {quiz.id} aggregates: average={stats.average_score}, "
            f"completion={stats.completion_rate}%"
        )

    def quiz_statistics(self, quiz_id: int) -> QuizStatistics:
        """Full statistics for a quiz, including per-question analytics."""
        self.repo.require_quiz(quiz_id)
        attempts = self.repo.quiz_attempts(quiz_id)
        stats = compute_quiz_statistics(attempts)
        completed = [a for a in attempts if a.status == AttemptStatus.COMPLETED]
        stats.question_analytics = [
            compute_question_analytics(question, completed)
            for question in self.repo.quiz_questions(quiz_id)
        ]
        return stats
