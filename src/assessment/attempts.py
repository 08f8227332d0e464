"""
Attempt lifecycle: start, submit, abandon, expire and manual grading.

States:
    In Progress -> Completed | Pending Review | Abandoned | Expired
    Pending Review -> Completed (once every essay has a manual grade)

score, max_score, percentage and passed are always recomputed from the
graded answer snapshot; callers never set them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Sequence

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from config import get_settings
from src.db.models import QuizAttempt
from src.db.utils import utcnow

from .analytics import AnalyticsAggregator, improvement_areas
from .certificates import CertificateIssuer
from .eligibility import IN_PROGRESS, Eligibility, evaluate_eligibility
from .enums import SCORED_STATUSES, AttemptStatus, QuizStatus
from .errors import ConcurrentUpdate, GradingPrecondition, NotEligible, ValidationFailure
from .grading import GradedAnswer, grade_answer
from .payloads import QuestionSpec, Response
from .scoring import compute_percentage, round_half_up, round_points
from .selection import ServedQuestion, select_questions, served_questions

PASSED_MESSAGE = "Congratulations! You have passed this quiz."
FAILED_MESSAGE = "You did not meet the passing score. Please review the material and try again."
PENDING_MESSAGE = "Your answers have been submitted and are awaiting manual review."

# Allowed status transitions
TRANSITIONS: Dict[AttemptStatus, frozenset] = {
    AttemptStatus.IN_PROGRESS: frozenset(
        {
            AttemptStatus.COMPLETED,
            AttemptStatus.PENDING_REVIEW,
            AttemptStatus.ABANDONED,
            AttemptStatus.EXPIRED,
        }
    ),
    AttemptStatus.PENDING_REVIEW: frozenset({AttemptStatus.PENDING_REVIEW, AttemptStatus.COMPLETED}),
    # Re-grading a completed attempt keeps it completed
    AttemptStatus.COMPLETED: frozenset({AttemptStatus.COMPLETED}),
}


@dataclass(frozen=True)
class UserIdentity:
    """Opaque identity supplied by the caller."""
    user_id: str
    name: str | None = None
    email: str | None = None


@dataclass
class AttemptResult:
    """Outcome of a submission or manual grade."""
    attempt_id: int
    quiz_id: int
    status: AttemptStatus
    score: float
    max_score: float
    percentage: int
    passed: bool
    time_spent: float | None
    answers: List[GradedAnswer]
    requires_manual_review: bool
    pending_questions: int
    certificate_url: str | None = None
    feedback: str = ""
    improvement_areas: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "attempt_id": self.attempt_id,
            "quiz_id": self.quiz_id,
            "status": self.status.value,
            "score": self.score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "passed": self.passed,
            "time_spent": self.time_spent,
            "answers": [a.to_dict() for a in self.answers],
            "requires_manual_review": self.requires_manual_review,
            "pending_questions": self.pending_questions,
            "certificate_url": self.certificate_url,
            "feedback": self.feedback,
            "improvement_areas": list(self.improvement_areas),
        }


def is_overdue(attempt: Any, quiz: Any, now: datetime) -> bool:
    """True when an in-progress attempt has run past the quiz time limit."""
    if attempt.status != AttemptStatus.IN_PROGRESS or not quiz.time_limit_minutes:
        return False
    return now > attempt.start_time + timedelta(minutes=quiz.time_limit_minutes)


def apply_totals(attempt: Any, quiz: Any, answers: Sequence[GradedAnswer]) -> None:
    """Recompute every derived field of an attempt from its answers."""
    score = round_points(sum(a.points_earned for a in answers))
    requires_review = any(a.awaiting_manual_grade for a in answers)
    percentage = compute_percentage(score, attempt.max_score or 0)

    attempt.score = score
    attempt.percentage = percentage
    attempt.requires_manual_review = requires_review
    attempt.passed = percentage >= quiz.passing_score and not requires_review

    attempt.questions_answered = sum(1 for a in answers if not a.is_skipped)
    attempt.questions_correct = sum(1 for a in answers if a.is_correct)
    attempt.questions_partial = sum(1 for a in answers if a.is_partially_correct)
    attempt.questions_skipped = sum(1 for a in answers if a.is_skipped)
    attempt.questions_incorrect = sum(
        1 for a in answers if a.is_incorrect and not a.awaiting_manual_grade
    )


def _index_responses(responses: Mapping[Any, Any] | Sequence[dict] | None) -> Dict[int, Response]:
    """Accept {question_id: response} or a list of responses carrying question_id."""
    if not responses:
        return {}
    if isinstance(responses, Mapping):
        items = responses.items()
    else:
        items = []
        for entry in responses:
            if "question_id" not in entry:
                raise ValidationFailure("Each response requires 'question_id'")
            items.append((entry["question_id"], entry))
    indexed = {}
    for question_id, response in items:
        if not isinstance(response, Response):
            response = Response.from_dict(response)
        indexed[int(question_id)] = response
    return indexed


class AttemptManager:
    """
    Runs attempts from start to final grade.

    Handles:
    - Eligibility re-check and question selection on start
    - Grading, totals and side effects on submit
    - Abandon / expire terminal transitions
    - Manual grading of essays with total recomputation
    - Attempt history and per-policy summaries
    """

    def __init__(self, repo):
        self.repo = repo
        self.settings = get_settings()
        self.analytics = AnalyticsAggregator(repo)
        self.certificates = CertificateIssuer(repo)

    # ========================================
    # Eligibility and Start
    # ========================================

    def check_eligibility(self, quiz_id: int, user_id: str, now: datetime | None = None) -> Eligibility:
        quiz = self.repo.require_quiz(quiz_id)
        attempts = self.repo.user_attempts(quiz_id, user_id)
        return evaluate_eligibility(quiz, attempts, now or utcnow())

    def start(
        self,
        quiz_id: int,
        user: UserIdentity,
        policy_id: int | None = None,
        now: datetime | None = None,
    ) -> QuizAttempt:
        """
        Start a new attempt.

        Raises:
            NotFound: Unknown quiz
            NotEligible: Eligibility failed, or an in-progress attempt
                appeared concurrently
            ValidationFailure: The quiz has no active questions
        """
        now = now or utcnow()
        quiz = self.repo.require_quiz(quiz_id)
        attempts = self.repo.user_attempts(quiz_id, user.user_id)

        eligibility = evaluate_eligibility(quiz, attempts, now)
        if not eligibility.can_take:
            logger.warning(
                f"Attempt refused: quiz {quiz_id}, user {user.user_id}, reason={eligibility.reason}"
            )
            eligibility.raise_if_ineligible()

        attempt_number = len(attempts) + 1
        questions = select_questions(
            quiz,
            self.repo.quiz_questions(quiz_id),
            self.repo.quiz_sections(quiz_id),
            user.user_id,
            attempt_number,
        )
        if not questions:
            raise ValidationFailure(f"Quiz {quiz_id} has no active questions")

        attempt = QuizAttempt(
            quiz_id=quiz.id,
            user_id=user.user_id,
            user_name=user.name,
            user_email=user.email,
            policy_id=policy_id if policy_id is not None else quiz.policy_id,
            attempt_number=attempt_number,
            status=AttemptStatus.IN_PROGRESS,
            start_time=now,
            question_ids=[q.id for q in questions],
            answers=[],
            score=0,
            max_score=round_points(sum(q.points for q in questions)),
            percentage=0,
            passed=False,
        )

        try:
            self.repo.add(attempt)
        except IntegrityError:
            self.repo.session.rollback()
            logger.warning(f"Concurrent start rejected: quiz {quiz_id}, user {user.user_id}")
            raise NotEligible(
                IN_PROGRESS,
                "You have an in-progress attempt",
                attempts_remaining=eligibility.attempts_remaining,
            ) from None

        logger.info(
            f"Quiz attempt started: quiz {quiz_id} by user {user.user_id} "
            f"(attempt {attempt_number}, {len(questions)} questions)"
        )
        return attempt

    def served_questions(self, attempt_id: int) -> List[ServedQuestion]:
        """Questions of an attempt in served order, with per-attempt option order."""
        attempt = self.repo.require_attempt(attempt_id)
        quiz = self.repo.require_quiz(attempt.quiz_id)
        return served_questions(attempt, quiz, self.repo.questions_by_ids(attempt.question_ids or []))

    # ========================================
    # Submit
    # ========================================

    def submit(
        self,
        attempt_id: int,
        responses: Mapping[Any, Any] | Sequence[dict] | None,
        now: datetime | None = None,
    ) -> AttemptResult:
        """
        Grade and close an in-progress attempt.

        Questions without a response are graded as skipped. A response
        for a question that was not served raises GradingPrecondition.
        """
        now = now or utcnow()
        attempt = self.repo.require_attempt(attempt_id)
        quiz = self.repo.require_quiz(attempt.quiz_id)
        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise GradingPrecondition(f"Attempt {attempt_id} is {attempt.status.value}, not In Progress")

        indexed = _index_responses(responses)
        served_ids = list(attempt.question_ids or [])
        unknown = sorted(set(indexed) - set(served_ids))
        if unknown:
            raise GradingPrecondition(f"Questions {unknown} were not served in attempt {attempt_id}")

        questions = self.repo.questions_by_ids(served_ids)
        answers = [
            grade_answer(
                QuestionSpec.from_record(question, quiz.allow_partial_credit),
                indexed.get(question.id),
            )
            for question in questions
        ]

        apply_totals(attempt, quiz, answers)
        attempt.set_answers(answers)
        attempt.end_time = now
        attempt.time_spent_minutes = round_half_up((now - attempt.start_time).total_seconds() / 60)
        self._transition(
            attempt,
            AttemptStatus.PENDING_REVIEW if attempt.requires_manual_review else AttemptStatus.COMPLETED,
        )
        self._flush(attempt)

        self.analytics.record_submission(quiz, answers)

        certificate_url = None
        if attempt.passed and quiz.generate_certificate:
            certificate_url = self.certificates.issue(attempt.id).certificate_url

        logger.info(
            f"Quiz attempt submitted: {attempt.id}, score {attempt.score}/{attempt.max_score} "
            f"({attempt.percentage}%), status={attempt.status.value}"
        )
        categories = {q.id: q.category for q in questions}
        return self._result(attempt, answers, certificate_url, improvement_areas(answers, categories))

    # ========================================
    # Abandon / Expire
    # ========================================

    def abandon(self, attempt_id: int, now: datetime | None = None) -> QuizAttempt:
        return self._close(attempt_id, AttemptStatus.ABANDONED, now)

    def expire(self, attempt_id: int, now: datetime | None = None) -> QuizAttempt:
        """Close an attempt that ran past its time limit. No scoring."""
        return self._close(attempt_id, AttemptStatus.EXPIRED, now)

    def _close(self, attempt_id: int, status: AttemptStatus, now: datetime | None) -> QuizAttempt:
        attempt = self.repo.require_attempt(attempt_id)
        self._transition(attempt, status)
        attempt.end_time = now or utcnow()
        self._flush(attempt)
        logger.info(f"Quiz attempt {attempt_id} {status.value.lower()}")
        return attempt

    # ========================================
    # Manual Grading
    # ========================================

    def manual_grade(
        self,
        attempt_id: int,
        question_id: int,
        grade: float,
        feedback: str | None,
        reviewer_id: str,
        now: datetime | None = None,
    ) -> AttemptResult:
        """
        Apply a reviewer's grade to one answer and recompute the attempt.

        Raises:
            GradingPrecondition: Attempt not Pending Review/Completed, or
                the question is not in its snapshot
            ValidationFailure: Grade outside [0, max_points]
        """
        attempt = self.repo.require_attempt(attempt_id)
        quiz = self.repo.require_quiz(attempt.quiz_id)
        if attempt.status not in SCORED_STATUSES:
            raise GradingPrecondition(
                f"Attempt {attempt_id} is {attempt.status.value}; only submitted attempts can be graded"
            )

        answers = attempt.graded_answers()
        answer = next((a for a in answers if a.question_id == question_id), None)
        if answer is None:
            raise GradingPrecondition(f"Question {question_id} is not part of attempt {attempt_id}")
        if grade < 0 or grade > answer.max_points:
            raise ValidationFailure(f"Grade must be between 0 and {answer.max_points:g}")

        answer.manual_grade = round_points(grade)
        answer.manual_feedback = feedback
        answer.points_earned = answer.manual_grade
        answer.is_correct = answer.manual_grade > 0

        apply_totals(attempt, quiz, answers)
        attempt.set_answers(answers)
        attempt.reviewed_by_id = reviewer_id
        attempt.reviewed_at = now or utcnow()
        self._transition(
            attempt,
            AttemptStatus.PENDING_REVIEW if attempt.requires_manual_review else AttemptStatus.COMPLETED,
        )
        self._flush(attempt)
        self.analytics.refresh_quiz_aggregates(quiz)

        certificate_url = attempt.certificate_url
        if attempt.passed and quiz.generate_certificate:
            certificate_url = self.certificates.issue(attempt.id).certificate_url

        logger.info(f"Manual grade applied: attempt {attempt_id}, question {question_id}, grade {grade:g}")
        return self._result(attempt, answers, certificate_url)

    # ========================================
    # Queries
    # ========================================

    def get_attempt(self, attempt_id: int) -> QuizAttempt:
        return self.repo.require_attempt(attempt_id)

    def user_attempts(self, quiz_id: int, user_id: str) -> List[QuizAttempt]:
        return self.repo.user_attempts(quiz_id, user_id)

    def user_history(self, user_id: str) -> List[QuizAttempt]:
        """Scored attempts across all quizzes, newest first."""
        return self.repo.user_history(user_id, list(SCORED_STATUSES), self.settings.history_limit)

    def quiz_summary(self, policy_id: int, user_id: str) -> dict:
        """Progress summary for the first published quiz attached to a policy."""
        quizzes = self.repo.list_quizzes(policy_id=policy_id, status=QuizStatus.PUBLISHED)
        if not quizzes:
            return {
                "has_quiz": False,
                "quiz_id": None,
                "quiz_title": None,
                "attempts": 0,
                "best_score": 0,
                "passed": False,
                "can_retake": False,
                "certificate_url": None,
            }

        quiz = quizzes[0]
        scored = [a for a in self.repo.user_attempts(quiz.id, user_id) if a.status in SCORED_STATUSES]
        passed_attempt = next((a for a in scored if a.passed), None)
        return {
            "has_quiz": True,
            "quiz_id": quiz.id,
            "quiz_title": quiz.title,
            "attempts": len(scored),
            "best_score": max((a.percentage for a in scored), default=0),
            "passed": passed_attempt is not None,
            "can_retake": len(scored) < quiz.max_attempts,
            "certificate_url": passed_attempt.certificate_url if passed_attempt else None,
        }

    # ========================================
    # Helpers
    # ========================================

    def _transition(self, attempt: QuizAttempt, target: AttemptStatus) -> None:
        allowed = TRANSITIONS.get(attempt.status, frozenset())
        if target not in allowed:
            raise GradingPrecondition(
                f"Attempt {attempt.id} cannot move from {attempt.status.value} to {target.value}"
            )
        attempt.status = target

    def _flush(self, attempt: QuizAttempt) -> None:
        try:
            self.repo.flush()
        except StaleDataError:
            logger.warning(f"Attempt {attempt.id} was modified concurrently")
            raise ConcurrentUpdate(f"Attempt {attempt.id} was modified by another request") from None

    def _result(
        self,
        attempt: QuizAttempt,
        answers: List[GradedAnswer],
        certificate_url: str | None,
        areas: List[str] | None = None,
    ) -> AttemptResult:
        if attempt.requires_manual_review:
            feedback = PENDING_MESSAGE
        else:
            feedback = PASSED_MESSAGE if attempt.passed else FAILED_MESSAGE
        return AttemptResult(
            attempt_id=attempt.id,
            quiz_id=attempt.quiz_id,
            status=attempt.status,
            score=attempt.score,
            max_score=attempt.max_score,
            percentage=attempt.percentage,
            passed=attempt.passed,
            time_spent=attempt.time_spent_minutes,
            answers=answers,
            requires_manual_review=attempt.requires_manual_review,
            pending_questions=sum(1 for a in answers if a.awaiting_manual_grade),
            certificate_url=certificate_url,
            feedback=feedback,
            improvement_areas=areas or [],
        )
