"""
Eligibility evaluation: may this user start a new attempt right now?

Pure function over the quiz, the user's prior attempts on it and the
current time. Rules are checked in a fixed order and the first failure
wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from .enums import SCORED_STATUSES, AttemptStatus, QuizStatus
from .errors import NotEligible

# Reason codes
QUIZ_UNAVAILABLE = "quiz_unavailable"
NOT_PUBLISHED = "not_published"
ARCHIVED = "archived"
NOT_STARTED = "not_started"
ENDED = "ended"
MAX_ATTEMPTS = "max_attempts"
IN_PROGRESS = "in_progress"


@dataclass
class Eligibility:
    """Outcome of an eligibility check."""
    can_take: bool
    reason: str | None = None
    message: str | None = None
    attempts_remaining: int | None = None
    next_available_date: datetime | None = None

    def raise_if_ineligible(self) -> None:
        if not self.can_take:
            raise NotEligible(
                self.reason or QUIZ_UNAVAILABLE,
                self.message or "Not eligible to take quiz",
                attempts_remaining=self.attempts_remaining,
                next_available_date=self.next_available_date,
            )

    def to_dict(self) -> dict:
        return {
            "can_take": self.can_take,
            "reason": self.reason,
            "message": self.message,
            "attempts_remaining": self.attempts_remaining,
            "next_available_date": self.next_available_date.isoformat() if self.next_available_date else None,
        }


def evaluate_eligibility(quiz: Any, attempts: Iterable[Any], now: datetime) -> Eligibility:
    """
    Decide whether a user may begin a new attempt.

    Args:
        quiz: Quiz record (status, is_active, schedule, max_attempts)
        attempts: All of this user's attempts on the quiz
        now: Current time, in the same timezone convention as the schedule

    Returns:
        Eligibility with a reason code when the user cannot take the quiz
    """
    if not quiz.is_active:
        return Eligibility(False, QUIZ_UNAVAILABLE, "Quiz is not available")

    if quiz.status == QuizStatus.DRAFT:
        return Eligibility(False, NOT_PUBLISHED, "Quiz is not published")

    if quiz.status == QuizStatus.ARCHIVED:
        return Eligibility(False, ARCHIVED, "Quiz has been archived")

    if quiz.scheduled_start and quiz.scheduled_start > now:
        return Eligibility(
            False,
            NOT_STARTED,
            "Quiz has not started yet",
            next_available_date=quiz.scheduled_start,
        )

    if quiz.scheduled_end and quiz.scheduled_end < now:
        return Eligibility(False, ENDED, "Quiz has ended")

    attempts = list(attempts)
    completed = sum(1 for a in attempts if a.status in SCORED_STATUSES)
    remaining = quiz.max_attempts - completed
    if remaining <= 0:
        return Eligibility(False, MAX_ATTEMPTS, "Maximum attempts reached", attempts_remaining=0)

    if any(a.status == AttemptStatus.IN_PROGRESS for a in attempts):
        return Eligibility(
            False,
            IN_PROGRESS,
            "You have an in-progress attempt",
            attempts_remaining=remaining,
        )

    return Eligibility(True, attempts_remaining=remaining)
