"""
Integration tests for the attempt lifecycle.

Runs start -> submit -> manual grade against an in-memory database:
1. Scoring and pass/fail on submission
2. Pending review for essays and manual grading
3. Abandon / expire transitions
4. Eligibility enforcement on start
5. Analytics and certificate side effects
"""

from datetime import timedelta

import pytest

from src.assessment import attempts as attempts_module
from src.assessment.attempts import FAILED_MESSAGE, PASSED_MESSAGE, PENDING_MESSAGE, is_overdue
from src.assessment.eligibility import IN_PROGRESS, MAX_ATTEMPTS, Eligibility
from src.assessment.enums import AttemptStatus, QuestionType
from src.assessment.errors import GradingPrecondition, NotEligible, ValidationFailure

pytestmark = pytest.mark.integration


def only_question_id(attempt):
    assert len(attempt.question_ids) == 1
    return attempt.question_ids[0]


class TestSubmission:
    def test_correct_answer_passes(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question], passing_score=70)
        attempt = manager.start(quiz.id, learner)

        result = manager.submit(attempt.id, {only_question_id(attempt): {"selected_answer": "B"}})

        assert result.score == 10
        assert result.max_score == 10
        assert result.percentage == 100
        assert result.passed
        assert result.status is AttemptStatus.COMPLETED
        assert result.feedback == PASSED_MESSAGE
        assert attempt.questions_correct == 1

    def test_wrong_answer_fails(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question], passing_score=70)
        attempt = manager.start(quiz.id, learner)

        result = manager.submit(attempt.id, [{"question_id": only_question_id(attempt), "selected_answer": "A"}])

        assert result.score == 0
        assert result.percentage == 0
        assert not result.passed
        assert result.feedback == FAILED_MESSAGE
        assert result.improvement_areas == ["PPE"]
        assert attempt.questions_incorrect == 1

    def test_negative_marking_can_drive_score_below_zero(self, make_quiz, manager, learner):
        quiz = make_quiz(
            [
                {
                    "question_text": "Which are fire classes?",
                    "question_type": QuestionType.MULTIPLE_SELECT,
                    "payload": {"options": {"A": "A", "B": "X", "C": "C"}, "correct_answers": ["A", "C"]},
                    "points": 10,
                    "negative_marking": True,
                    "negative_points": 5,
                    "partial_credit_enabled": False,
                }
            ]
        )
        attempt = manager.start(quiz.id, learner)

        result = manager.submit(attempt.id, {only_question_id(attempt): {"selected_answers": ["B"]}})

        assert result.answers[0].points_earned == -5
        assert result.score == -5
        assert result.percentage == 0
        assert not result.passed

    def test_unanswered_questions_are_skipped(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question, {**mc_question, "question_text": "Second?"}])
        attempt = manager.start(quiz.id, learner)

        result = manager.submit(attempt.id, {})

        assert attempt.questions_skipped == 2
        assert attempt.questions_answered == 0
        assert result.score == 0

    def test_quiz_partial_credit_inherited(self, make_quiz, manager, learner):
        quiz = make_quiz(
            [
                {
                    "question_text": "Pick the PPE",
                    "question_type": QuestionType.MULTIPLE_SELECT,
                    "payload": {"options": {"A": "Helmet", "B": "Sandals", "C": "Gloves"}, "correct_answers": ["A", "C"]},
                    "points": 10,
                }
            ],
            allow_partial_credit=True,
            passing_score=50,
        )
        attempt = manager.start(quiz.id, learner)

        result = manager.submit(attempt.id, {only_question_id(attempt): {"selected_answers": ["A"]}})

        assert result.score == 5
        assert result.percentage == 50
        assert result.passed
        assert attempt.questions_partial == 1

    def test_submit_twice_rejected(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question])
        attempt = manager.start(quiz.id, learner)
        manager.submit(attempt.id, {})

        with pytest.raises(GradingPrecondition):
            manager.submit(attempt.id, {})

    def test_response_for_unserved_question_rejected(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question])
        attempt = manager.start(quiz.id, learner)

        with pytest.raises(GradingPrecondition, match="not served"):
            manager.submit(attempt.id, {9999: {"selected_answer": "B"}})
        assert attempt.status is AttemptStatus.IN_PROGRESS

    def test_time_spent_recorded(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question])
        attempt = manager.start(quiz.id, learner)

        result = manager.submit(attempt.id, {}, now=attempt.start_time + timedelta(minutes=12, seconds=40))

        assert result.time_spent == 13
        assert attempt.end_time is not None


class TestManualReview:
    def test_essay_goes_to_review_then_completes(self, make_quiz, manager, learner, essay_question, mc_question):
        quiz = make_quiz([essay_question, {**mc_question, "points": 5}], passing_score=70)
        attempt = manager.start(quiz.id, learner)
        essay_id, mc_id = attempt.question_ids

        result = manager.submit(
            attempt.id,
            {
                essay_id: {"essay_text": "Leave by the nearest exit and report to the marshal."},
                mc_id: {"selected_answer": "B"},
            },
        )
        assert result.status is AttemptStatus.PENDING_REVIEW
        assert result.score == 5
        assert result.requires_manual_review
        assert result.pending_questions == 1
        assert not result.passed
        assert result.feedback == PENDING_MESSAGE

        graded = manager.manual_grade(attempt.id, essay_id, 5, "Clear and complete", "reviewer-9")

        assert graded.score == 10
        assert graded.status is AttemptStatus.COMPLETED
        assert graded.passed
        assert attempt.reviewed_by_id == "reviewer-9"
        essay = next(a for a in attempt.graded_answers() if a.question_id == essay_id)
        assert essay.manual_grade == 5
        assert essay.manual_feedback == "Clear and complete"

    def test_manual_grade_issues_certificate_once(self, make_quiz, manager, repo, learner, essay_question, mc_question):
        quiz = make_quiz([essay_question, {**mc_question, "points": 5}], passing_score=70, generate_certificate=True)
        attempt = manager.start(quiz.id, learner)
        essay_id, mc_id = attempt.question_ids
        manager.submit(attempt.id, {essay_id: {"essay_text": "Report to the marshal."}, mc_id: {"selected_answer": "B"}})
        assert repo.user_certificates(learner.user_id) == []

        graded = manager.manual_grade(attempt.id, essay_id, 5, None, "reviewer-9")

        [certificate] = repo.user_certificates(learner.user_id)
        assert graded.certificate_url == certificate.certificate_url
        assert attempt.certificate_generated
        assert attempt.certificate_url == certificate.certificate_url

        regraded = manager.manual_grade(attempt.id, essay_id, 4, None, "reviewer-9")

        assert regraded.passed
        assert regraded.certificate_url == certificate.certificate_url
        assert len(repo.user_certificates(learner.user_id)) == 1

    def test_grade_outside_bounds(self, make_quiz, manager, learner, essay_question):
        quiz = make_quiz([essay_question])
        attempt = manager.start(quiz.id, learner)
        manager.submit(attempt.id, {only_question_id(attempt): {"essay_text": "text"}})

        with pytest.raises(ValidationFailure):
            manager.manual_grade(attempt.id, only_question_id(attempt), 6, None, "reviewer-9")

    def test_grading_in_progress_attempt_rejected(self, make_quiz, manager, learner, essay_question):
        quiz = make_quiz([essay_question])
        attempt = manager.start(quiz.id, learner)

        with pytest.raises(GradingPrecondition):
            manager.manual_grade(attempt.id, only_question_id(attempt), 3, None, "reviewer-9")

    def test_unknown_question_rejected(self, make_quiz, manager, learner, essay_question):
        quiz = make_quiz([essay_question])
        attempt = manager.start(quiz.id, learner)
        manager.submit(attempt.id, {})

        with pytest.raises(GradingPrecondition, match="not part of attempt"):
            manager.manual_grade(attempt.id, 9999, 3, None, "reviewer-9")


class TestCloseWithoutScoring:
    def test_abandon(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question], max_attempts=1)
        attempt = manager.start(quiz.id, learner)

        manager.abandon(attempt.id)

        assert attempt.status is AttemptStatus.ABANDONED
        assert attempt.end_time is not None
        # Abandoned attempts do not use up the allowance
        assert manager.check_eligibility(quiz.id, learner.user_id).can_take

    def test_expire_only_from_in_progress(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question])
        attempt = manager.start(quiz.id, learner)
        manager.expire(attempt.id)

        assert attempt.status is AttemptStatus.EXPIRED
        with pytest.raises(GradingPrecondition):
            manager.abandon(attempt.id)
        with pytest.raises(GradingPrecondition):
            manager.submit(attempt.id, {})

    def test_is_overdue(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question], time_limit_minutes=30)
        attempt = manager.start(quiz.id, learner)

        assert not is_overdue(attempt, quiz, attempt.start_time + timedelta(minutes=29))
        assert is_overdue(attempt, quiz, attempt.start_time + timedelta(minutes=31))


class TestStartRules:
    def test_start_snapshots_questions(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question, {**mc_question, "points": 5}])
        attempt = manager.start(quiz.id, learner, policy_id=42)

        assert attempt.status is AttemptStatus.IN_PROGRESS
        assert attempt.attempt_number == 1
        assert attempt.max_score == 15
        assert attempt.policy_id == 42
        assert attempt.user_name == "Ada Learner"
        assert len(manager.served_questions(attempt.id)) == 2

    def test_fetch_limit_does_not_truncate_attempt(self, make_quiz, manager, learner, mc_question, monkeypatch):
        quiz = make_quiz([mc_question, {**mc_question, "points": 5}, {**mc_question, "points": 2}])
        monkeypatch.setattr(manager.settings, "question_fetch_limit", 1)

        attempt = manager.start(quiz.id, learner)

        assert len(attempt.question_ids) == 3
        assert attempt.max_score == 17

    def test_second_start_while_in_progress(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question])
        manager.start(quiz.id, learner)

        with pytest.raises(NotEligible) as excinfo:
            manager.start(quiz.id, learner)
        assert excinfo.value.reason == IN_PROGRESS

    def test_concurrent_start_hits_unique_index(self, make_quiz, manager, learner, mc_question, session, monkeypatch):
        quiz = make_quiz([mc_question])
        manager.start(quiz.id, learner)
        session.commit()

        # Simulate a second request that checked eligibility before the first insert
        monkeypatch.setattr(
            attempts_module,
            "evaluate_eligibility",
            lambda quiz, attempts, now: Eligibility(True, attempts_remaining=2),
        )
        with pytest.raises(NotEligible) as excinfo:
            manager.start(quiz.id, learner)
        assert excinfo.value.reason == IN_PROGRESS
        assert len(manager.user_attempts(quiz.id, learner.user_id)) == 1

    def test_max_attempts(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question], max_attempts=2)
        for _ in range(2):
            attempt = manager.start(quiz.id, learner)
            manager.submit(attempt.id, {})

        with pytest.raises(NotEligible) as excinfo:
            manager.start(quiz.id, learner)
        assert excinfo.value.reason == MAX_ATTEMPTS
        assert excinfo.value.attempts_remaining == 0

    def test_attempt_numbers_increase(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question])
        first = manager.start(quiz.id, learner)
        manager.abandon(first.id)
        second = manager.start(quiz.id, learner)

        assert second.attempt_number == 2

    def test_draft_quiz_cannot_be_started(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question], publish=False)

        with pytest.raises(NotEligible):
            manager.start(quiz.id, learner)

    def test_randomized_options_stable_per_attempt(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question], randomize_options=True)
        attempt = manager.start(quiz.id, learner)

        first = manager.served_questions(attempt.id)[0].option_order
        assert sorted(first) == ["A", "B", "C"]
        assert manager.served_questions(attempt.id)[0].option_order == first


class TestSideEffects:
    def test_question_counters_and_quiz_aggregates(self, make_quiz, manager, learner, repo, mc_question):
        quiz = make_quiz([mc_question])
        attempt = manager.start(quiz.id, learner)
        question_id = only_question_id(attempt)
        manager.submit(attempt.id, {question_id: {"selected_answer": "B", "time_spent": 30}})

        question = repo.get_question(question_id)
        assert question.times_answered == 1
        assert question.times_correct == 1
        assert question.average_time == 30
        assert quiz.average_score == 100
        assert quiz.completion_rate == 100

    def test_certificate_issued_on_pass(self, make_quiz, manager, learner, repo, mc_question):
        quiz = make_quiz([mc_question], generate_certificate=True)
        attempt = manager.start(quiz.id, learner)

        result = manager.submit(attempt.id, {only_question_id(attempt): {"selected_answer": "B"}})

        assert result.certificate_url.startswith(f"/certificates/CERT-{quiz.id}-{attempt.id}-")
        assert attempt.certificate_generated
        assert repo.certificate_for_attempt(attempt.id) is not None

    def test_no_certificate_on_fail(self, make_quiz, manager, learner, repo, mc_question):
        quiz = make_quiz([mc_question], generate_certificate=True)
        attempt = manager.start(quiz.id, learner)

        result = manager.submit(attempt.id, {only_question_id(attempt): {"selected_answer": "C"}})

        assert result.certificate_url is None
        assert repo.certificate_for_attempt(attempt.id) is None


class TestQueries:
    def test_history_and_summary(self, make_quiz, manager, learner, mc_question):
        quiz = make_quiz([mc_question], policy_id=42, max_attempts=3)
        failed = manager.start(quiz.id, learner)
        manager.submit(failed.id, {})
        passed = manager.start(quiz.id, learner)
        manager.submit(passed.id, {only_question_id(passed): {"selected_answer": "B"}})
        abandoned = manager.start(quiz.id, learner)
        manager.abandon(abandoned.id)

        history = manager.user_history(learner.user_id)
        assert {a.id for a in history} == {failed.id, passed.id}

        summary = manager.quiz_summary(42, learner.user_id)
        assert summary["has_quiz"]
        assert summary["quiz_id"] == quiz.id
        assert summary["attempts"] == 2
        assert summary["best_score"] == 100
        assert summary["passed"]
        assert summary["can_retake"]

    def test_summary_without_quiz(self, manager, learner):
        summary = manager.quiz_summary(404, learner.user_id)
        assert summary["has_quiz"] is False
        assert summary["attempts"] == 0
