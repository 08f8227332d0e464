"""
Integration tests for quiz export snapshots and import.
"""

from datetime import datetime

import pytest

from src.assessment.enums import QuestionType, QuizStatus
from src.assessment.errors import ValidationFailure
from src.assessment.transfer import QuizTransfer

pytestmark = pytest.mark.integration


@pytest.fixture
def transfer(repo):
    return QuizTransfer(repo)


@pytest.fixture
def sectioned_quiz(authoring):
    quiz = authoring.create_quiz("Forklift Operation", policy_id=7, passing_score=80, tags="warehouse")
    section = authoring.create_section(quiz.id, "Pre-use checks", questions_required=1)
    authoring.create_question(
        "Check the forks before use?",
        QuestionType.TRUE_FALSE,
        {"correct_answer": "True"},
        quiz_id=quiz.id,
        section_id=section.id,
    )
    authoring.create_question(
        "Maximum speed indoors?",
        QuestionType.SHORT_ANSWER,
        {"accepted_answers": ["5 mph", "five"]},
        quiz_id=quiz.id,
        points=5,
    )
    retired = authoring.create_question(
        "Retired question",
        QuestionType.TRUE_FALSE,
        {"correct_answer": "False"},
        quiz_id=quiz.id,
    )
    authoring.deactivate_question(retired.id)
    authoring.publish_quiz(quiz.id)
    return quiz


class TestExport:
    def test_snapshot_shape(self, transfer, sectioned_quiz):
        snapshot = transfer.export_quiz(sectioned_quiz.id)

        assert snapshot["version"] == "1.0"
        assert "exportDate" in snapshot
        assert snapshot["quiz"]["title"] == "Forklift Operation"
        assert snapshot["quiz"]["status"] == "Published"
        assert snapshot["quiz"]["passing_score"] == 80
        assert "created_by_id" not in snapshot["quiz"]
        assert [s["title"] for s in snapshot["sections"]] == ["Pre-use checks"]

        questions = snapshot["questions"]
        assert [q["question_text"] for q in questions] == ["Check the forks before use?", "Maximum speed indoors?"]
        assert questions[1]["question_type"] == "Short Answer"
        assert all("id" not in q for q in questions)


class TestImport:
    def test_round_trip_creates_new_records(self, transfer, repo, sectioned_quiz):
        snapshot = transfer.export_quiz(sectioned_quiz.id)

        copy = transfer.import_quiz(snapshot)

        assert copy.id != sectioned_quiz.id
        assert copy.title == "Forklift Operation"
        assert copy.status is QuizStatus.PUBLISHED
        assert copy.policy_id == 7
        assert copy.question_count == 2

        [section] = repo.quiz_sections(copy.id)
        assert section.questions_required == 1
        questions = repo.quiz_questions(copy.id)
        assert [q.question_order for q in questions] == [1, 2]
        assert questions[0].section_id == section.id
        assert questions[1].section_id is None
        assert questions[1].payload["accepted_answers"] == ["5 mph", "five"]

    def test_overrides(self, transfer, sectioned_quiz):
        snapshot = transfer.export_quiz(sectioned_quiz.id)

        copy = transfer.import_quiz(snapshot, new_title="Forklift Refresher", policy_id=9, as_draft=True)

        assert copy.title == "Forklift Refresher"
        assert copy.policy_id == 9
        assert copy.status is QuizStatus.DRAFT

    def test_offset_dates_stored_as_utc(self, transfer, sectioned_quiz):
        snapshot = transfer.export_quiz(sectioned_quiz.id)
        snapshot["quiz"]["scheduled_start"] = "2026-05-01T15:00:00+05:00"
        snapshot["quiz"]["scheduled_end"] = "2026-05-01T12:00:00"

        copy = transfer.import_quiz(snapshot)

        assert copy.scheduled_start == datetime(2026, 5, 1, 10, 0)
        assert copy.scheduled_end == datetime(2026, 5, 1, 12, 0)

    def test_unsupported_version(self, transfer, sectioned_quiz):
        snapshot = transfer.export_quiz(sectioned_quiz.id)
        snapshot["version"] = "2.0"

        with pytest.raises(ValidationFailure, match="Unsupported snapshot version"):
            transfer.import_quiz(snapshot)

    def test_missing_quiz_block(self, transfer):
        with pytest.raises(ValidationFailure, match="missing 'quiz'"):
            transfer.import_quiz({"version": "1.0"})

    def test_bad_question_reports_position(self, transfer, sectioned_quiz):
        snapshot = transfer.export_quiz(sectioned_quiz.id)
        snapshot["questions"][1]["payload"] = {}

        with pytest.raises(ValidationFailure) as excinfo:
            transfer.import_quiz(snapshot)
        assert excinfo.value.errors[0].startswith("Question 2:")
