"""
Integration tests for quiz authoring: quizzes, questions, sections and banks.
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.assessment.enums import DifficultyLevel, QuestionType, QuizStatus
from src.assessment.errors import NotFound, ValidationFailure

pytestmark = pytest.mark.integration


def add_questions(authoring, quiz, count, **fields):
    return [
        authoring.create_question(
            f"Question {i}",
            QuestionType.TRUE_FALSE,
            {"correct_answer": "True"},
            quiz_id=quiz.id,
            **fields,
        )
        for i in range(1, count + 1)
    ]


class TestQuizzes:
    def test_create_applies_defaults(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")

        assert quiz.status is QuizStatus.DRAFT
        assert quiz.passing_score == 70
        assert quiz.difficulty_level is DifficultyLevel.MEDIUM
        assert quiz.category == "General"
        assert quiz.question_count == 0
        assert quiz.is_active

    @pytest.mark.parametrize(
        "fields, message",
        [
            ({"passing_score": 120}, "passing_score must be between 0 and 100"),
            ({"max_attempts": 0}, "max_attempts must be at least 1"),
            ({"colour": "red"}, "Unknown quiz field: colour"),
        ],
    )
    def test_create_rejects_bad_fields(self, authoring, fields, message):
        with pytest.raises(ValidationFailure) as excinfo:
            authoring.create_quiz("Ladder Safety", **fields)
        assert message in excinfo.value.errors

    def test_blank_title(self, authoring):
        with pytest.raises(ValidationFailure, match="title is required"):
            authoring.create_quiz("   ")

    def test_update_checks_schedule_against_stored_values(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety", scheduled_start=datetime(2026, 3, 1))

        with pytest.raises(ValidationFailure):
            authoring.update_quiz(quiz.id, scheduled_end=datetime(2026, 2, 1))

        authoring.update_quiz(quiz.id, passing_score=80, difficulty_level="hard")
        assert quiz.passing_score == 80
        assert quiz.difficulty_level is DifficultyLevel.HARD

    def test_publish_requires_questions(self, authoring):
        quiz = authoring.create_quiz("Empty")

        with pytest.raises(ValidationFailure, match="Cannot publish quiz with no questions"):
            authoring.publish_quiz(quiz.id)
        assert quiz.status is QuizStatus.DRAFT

    def test_publish_counts_active_questions(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")
        add_questions(authoring, quiz, 3)

        authoring.publish_quiz(quiz.id)

        assert quiz.status is QuizStatus.PUBLISHED
        assert quiz.question_count == 3

    def test_schedule(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")
        add_questions(authoring, quiz, 1)

        with pytest.raises(ValidationFailure):
            authoring.schedule_quiz(quiz.id, datetime(2026, 5, 2), datetime(2026, 5, 1))

        authoring.schedule_quiz(quiz.id, datetime(2026, 5, 1), datetime(2026, 5, 2))
        assert quiz.status is QuizStatus.SCHEDULED
        assert quiz.scheduled_end == datetime(2026, 5, 2)

    def test_schedule_with_offsets_stores_utc(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")
        add_questions(authoring, quiz, 1)
        plus_five = timezone(timedelta(hours=5))

        authoring.schedule_quiz(quiz.id, datetime(2026, 5, 1, 15, 0, tzinfo=plus_five), datetime(2026, 5, 1, 12, 0))

        assert quiz.scheduled_start == datetime(2026, 5, 1, 10, 0)
        assert quiz.scheduled_start.tzinfo is None
        assert quiz.scheduled_end == datetime(2026, 5, 1, 12, 0)

    def test_aware_schedule_on_create_and_update(self, authoring, manager):
        an_hour_ago = datetime.now(timezone.utc) - timedelta(hours=1)
        quiz = authoring.create_quiz("Ladder Safety", scheduled_start=an_hour_ago)
        add_questions(authoring, quiz, 1)
        authoring.publish_quiz(quiz.id)

        assert quiz.scheduled_start.tzinfo is None
        assert manager.check_eligibility(quiz.id, "user-1").can_take

        authoring.update_quiz(quiz.id, scheduled_end=datetime(2099, 1, 1, 23, 0, tzinfo=timezone(timedelta(hours=-2))))
        assert quiz.scheduled_end == datetime(2099, 1, 2, 1, 0)

    def test_archive_hides_from_listing(self, authoring):
        kept = authoring.create_quiz("Kept")
        archived = authoring.create_quiz("Archived")

        authoring.archive_quiz(archived.id)

        assert archived.status is QuizStatus.ARCHIVED
        assert not archived.is_active
        assert [q.id for q in authoring.list_quizzes()] == [kept.id]
        assert len(authoring.list_quizzes(include_archived=True)) == 2

    def test_unknown_quiz(self, authoring):
        with pytest.raises(NotFound):
            authoring.publish_quiz(404)


class TestQuestions:
    def test_orders_are_dense_after_deactivate(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")
        first, second, third = add_questions(authoring, quiz, 3)
        assert [q.question_order for q in (first, second, third)] == [1, 2, 3]

        authoring.deactivate_question(second.id)

        remaining = authoring.quiz_questions(quiz.id)
        assert [q.id for q in remaining] == [first.id, third.id]
        assert [q.question_order for q in remaining] == [1, 2]
        assert quiz.question_count == 2
        assert len(authoring.quiz_questions(quiz.id, include_inactive=True)) == 3

    def test_new_question_appends_after_last(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")
        add_questions(authoring, quiz, 2)
        [added] = add_questions(authoring, quiz, 1)
        assert added.question_order == 3

    def test_payload_is_validated(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")

        with pytest.raises(ValidationFailure):
            authoring.create_question(
                "Pick one",
                QuestionType.MULTIPLE_CHOICE,
                {"options": {"A": "x"}, "correct_answer": "Z"},
                quiz_id=quiz.id,
            )
        assert authoring.quiz_questions(quiz.id) == []

    def test_question_requires_owner(self, authoring):
        with pytest.raises(ValidationFailure, match="quiz or a question bank"):
            authoring.create_question("Orphan?", QuestionType.TRUE_FALSE, {"correct_answer": "True"})

    def test_non_positive_points(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")
        with pytest.raises(ValidationFailure, match="Points must be greater than 0"):
            add_questions(authoring, quiz, 1, points=0)

    def test_update_revalidates_payload(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")
        [question] = add_questions(authoring, quiz, 1)

        with pytest.raises(ValidationFailure):
            authoring.update_question(question.id, payload={"correct_answer": "Maybe"})

        authoring.update_question(question.id, payload={"correct_answer": "False"}, points=4)
        assert question.payload["correct_answer"] == "False"
        assert question.points == 4

    def test_reorder(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")
        questions = add_questions(authoring, quiz, 3)
        reversed_ids = [q.id for q in reversed(questions)]

        authoring.reorder_questions(quiz.id, reversed_ids)

        assert [q.id for q in authoring.quiz_questions(quiz.id)] == reversed_ids

    def test_reorder_must_list_every_question(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")
        questions = add_questions(authoring, quiz, 3)

        with pytest.raises(ValidationFailure):
            authoring.reorder_questions(quiz.id, [questions[0].id, questions[1].id])
        with pytest.raises(ValidationFailure):
            authoring.reorder_questions(quiz.id, [questions[0].id, questions[0].id, questions[1].id])

    def test_duplicate_into_other_quiz(self, authoring):
        source = authoring.create_quiz("Source")
        target = authoring.create_quiz("Target")
        add_questions(authoring, target, 2)
        section = authoring.create_section(source.id, "Part 1")
        [question] = add_questions(authoring, source, 1, section_id=section.id)

        copy = authoring.duplicate_question(question.id, target_quiz_id=target.id)

        assert copy.id != question.id
        assert copy.quiz_id == target.id
        assert copy.question_order == 3
        assert copy.section_id is None
        assert copy.payload == question.payload

    def test_bulk_create_reports_position(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")
        batch = [
            {"question_text": "Ok?", "question_type": "True/False", "payload": {"correct_answer": "True"}, "quiz_id": quiz.id},
            {"question_text": "", "question_type": "True/False", "payload": {"correct_answer": "True"}, "quiz_id": quiz.id},
        ]

        with pytest.raises(ValidationFailure) as excinfo:
            authoring.bulk_create_questions(batch)
        assert excinfo.value.errors[0].startswith("Question 2:")


class TestSections:
    def test_sections_are_ordered(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")
        first = authoring.create_section(quiz.id, "Basics")
        second = authoring.create_section(quiz.id, "Advanced", questions_required=2)

        assert [s.order for s in (first, second)] == [1, 2]
        assert [s.id for s in authoring.quiz_sections(quiz.id)] == [first.id, second.id]

    def test_section_from_another_quiz_rejected(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")
        other = authoring.create_quiz("Other")
        section = authoring.create_section(other.id, "Basics")

        with pytest.raises(ValidationFailure, match="does not belong"):
            add_questions(authoring, quiz, 1, section_id=section.id)


class TestQuestionBanks:
    def test_bank_questions_and_counts(self, authoring):
        bank = authoring.create_question_bank("Electrical", category="Safety")
        easy = authoring.create_question(
            "Is water conductive?",
            QuestionType.TRUE_FALSE,
            {"correct_answer": "True"},
            question_bank_id=bank.id,
            difficulty_level="Easy",
        )
        authoring.create_question(
            "Explain lockout/tagout",
            QuestionType.ESSAY,
            {},
            question_bank_id=bank.id,
            difficulty_level="Hard",
        )

        assert bank.question_count == 2
        assert [q.id for q in authoring.questions_from_bank(bank.id, difficulty="Easy")] == [easy.id]
        assert len(authoring.questions_from_bank(bank.id, limit=1, randomize=True, seed=3)) == 1
        assert [b.id for b in authoring.list_question_banks(category="Safety")] == [bank.id]

    def test_add_existing_questions_to_bank(self, authoring):
        quiz = authoring.create_quiz("Ladder Safety")
        questions = add_questions(authoring, quiz, 2)
        bank = authoring.create_question_bank("Ladders")

        authoring.add_questions_to_bank(bank.id, [q.id for q in questions])

        assert bank.question_count == 2
        assert all(q.question_bank_id == bank.id for q in questions)
