"""
Quiz authoring: quizzes, questions, sections and question banks.

Keeps the structural invariants the attempt side relies on:
- question_order is dense and 1-based among a quiz's active questions
- every stored payload parses for its question type
- a quiz cannot be published without active questions
"""
from __future__ import annotations

import random
from datetime import datetime
from typing import Any, Dict, Iterable, List, Sequence

from loguru import logger

from config import get_settings
from src.db.models import QuestionBank, Quiz, QuizQuestion, QuizSection
from src.db.utils import to_naive_utc

from .enums import DifficultyLevel, QuestionType, QuizStatus
from .errors import ValidationFailure
from .payloads import parse_payload

QUIZ_FIELDS = frozenset(
    {
        "title",
        "description",
        "policy_id",
        "policy_title",
        "category",
        "difficulty_level",
        "passing_score",
        "time_limit_minutes",
        "max_attempts",
        "randomize_questions",
        "randomize_options",
        "show_correct_answers",
        "show_explanations",
        "allow_review",
        "allow_partial_credit",
        "is_active",
        "status",
        "scheduled_start",
        "scheduled_end",
        "question_bank_id",
        "question_pool_size",
        "generate_certificate",
        "tags",
        "created_by_id",
    }
)

QUESTION_FIELDS = frozenset(
    {
        "quiz_id",
        "question_bank_id",
        "section_id",
        "question_text",
        "question_type",
        "question_image",
        "payload",
        "explanation",
        "correct_feedback",
        "incorrect_feedback",
        "partial_feedback",
        "hint",
        "points",
        "partial_credit_enabled",
        "negative_marking",
        "negative_points",
        "difficulty_level",
        "category",
        "tags",
        "time_limit_seconds",
        "is_required",
    }
)

SECTION_FIELDS = frozenset({"title", "description", "randomize_within_section", "questions_required"})
BANK_FIELDS = frozenset({"title", "description", "category", "tags", "is_public", "created_by_id"})


def _reject_unknown(fields: Dict[str, Any], allowed: frozenset, entity: str) -> None:
    unknown = sorted(set(fields) - allowed)
    if unknown:
        raise ValidationFailure([f"Unknown {entity} field: {name}" for name in unknown])


def _quiz_errors(values: Dict[str, Any]) -> List[str]:
    errors = []
    if "title" in values and not (values["title"] or "").strip():
        errors.append("Quiz title is required")
    if "passing_score" in values and not 0 <= values["passing_score"] <= 100:
        errors.append("passing_score must be between 0 and 100")
    if "max_attempts" in values and values["max_attempts"] < 1:
        errors.append("max_attempts must be at least 1")
    if "time_limit_minutes" in values and values["time_limit_minutes"] < 0:
        errors.append("time_limit_minutes cannot be negative")
    if values.get("question_pool_size") is not None and values["question_pool_size"] < 1:
        errors.append("question_pool_size must be at least 1")
    start, end = values.get("scheduled_start"), values.get("scheduled_end")
    if start and end and end <= start:
        errors.append("scheduled_end must be after scheduled_start")
    return errors


def _coerce_quiz_fields(values: Dict[str, Any]) -> None:
    if values.get("status") is not None:
        values["status"] = QuizStatus(values["status"])
    if values.get("difficulty_level") is not None:
        values["difficulty_level"] = DifficultyLevel.parse(values["difficulty_level"])
    for key in ("scheduled_start", "scheduled_end"):
        if isinstance(values.get(key), datetime):
            values[key] = to_naive_utc(values[key])


class QuizAuthoring:
    """
    Authoring operations over quizzes and their content.

    Handles:
    - Quiz create/update/archive/publish/schedule and listing
    - Question create/update/deactivate/duplicate/reorder
    - Sections and reusable question banks
    """

    def __init__(self, repo):
        self.repo = repo
        self.settings = get_settings()

    # ========================================
    # Quizzes
    # ========================================

    def create_quiz(self, title: str, **fields) -> Quiz:
        """Create a Draft quiz with configured defaults for anything not given."""
        _reject_unknown(fields, QUIZ_FIELDS, "quiz")
        values: Dict[str, Any] = {
            "category": "General",
            "difficulty_level": DifficultyLevel.MEDIUM,
            "passing_score": self.settings.default_passing_score,
            "time_limit_minutes": self.settings.default_time_limit_minutes,
            "max_attempts": self.settings.default_max_attempts,
            "randomize_questions": True,
            "randomize_options": False,
            "show_correct_answers": True,
            "show_explanations": True,
            "allow_review": True,
            "allow_partial_credit": True,
            "is_active": True,
            "status": QuizStatus.DRAFT,
            "generate_certificate": False,
        }
        values.update({k: v for k, v in fields.items() if v is not None})
        values["title"] = title
        _coerce_quiz_fields(values)

        errors = _quiz_errors(values)
        if errors:
            raise ValidationFailure(errors)

        quiz = self.repo.add(Quiz(question_count=0, **values))
        logger.info(f"Quiz created: {quiz.id} {quiz.title!r}")
        return quiz

    def update_quiz(self, quiz_id: int, **updates) -> Quiz:
        quiz = self.repo.require_quiz(quiz_id)
        _reject_unknown(updates, QUIZ_FIELDS, "quiz")
        _coerce_quiz_fields(updates)

        merged = {
            "scheduled_start": quiz.scheduled_start,
            "scheduled_end": quiz.scheduled_end,
            **updates,
        }
        errors = _quiz_errors(merged)
        if errors:
            raise ValidationFailure(errors)

        for key, value in updates.items():
            setattr(quiz, key, value)
        self.repo.flush()
        logger.info(f"Quiz updated: {quiz_id} ({', '.join(sorted(updates)) or 'no changes'})")
        return quiz

    def archive_quiz(self, quiz_id: int) -> Quiz:
        """Soft delete: the quiz stays on file but can no longer be taken."""
        quiz = self.repo.require_quiz(quiz_id)
        quiz.is_active = False
        quiz.status = QuizStatus.ARCHIVED
        self.repo.flush()
        logger.info(f"Quiz archived: {quiz_id}")
        return quiz

    def publish_quiz(self, quiz_id: int) -> Quiz:
        quiz = self.repo.require_quiz(quiz_id)
        active = self.repo.count_active_questions(quiz_id)
        if active == 0:
            logger.warning(f"Publish refused for quiz {quiz_id}: no active questions")
            raise ValidationFailure("Cannot publish quiz with no questions")
        quiz.status = QuizStatus.PUBLISHED
        quiz.question_count = active
        self.repo.flush()
        logger.info(f"Quiz published: {quiz_id} with {active} questions")
        return quiz

    def schedule_quiz(self, quiz_id: int, start: datetime, end: datetime | None = None) -> Quiz:
        quiz = self.repo.require_quiz(quiz_id)
        start, end = to_naive_utc(start), to_naive_utc(end)
        if end is not None and end <= start:
            raise ValidationFailure("scheduled_end must be after scheduled_start")
        if self.repo.count_active_questions(quiz_id) == 0:
            raise ValidationFailure("Cannot schedule quiz with no questions")
        quiz.status = QuizStatus.SCHEDULED
        quiz.scheduled_start = start
        quiz.scheduled_end = end
        quiz.question_count = self.repo.count_active_questions(quiz_id)
        self.repo.flush()
        logger.info(f"Quiz scheduled: {quiz_id} from {start.isoformat()}")
        return quiz

    def list_quizzes(
        self,
        status: QuizStatus | str | None = None,
        category: str | None = None,
        policy_id: int | None = None,
        include_archived: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> List[Quiz]:
        return self.repo.list_quizzes(
            status=QuizStatus(status) if status is not None else None,
            category=category,
            policy_id=policy_id,
            include_archived=include_archived,
            limit=limit,
            offset=offset,
        )

    # ========================================
    # Questions
    # ========================================

    def create_question(
        self,
        question_text: str,
        question_type: QuestionType | str = QuestionType.MULTIPLE_CHOICE,
        payload: Dict[str, Any] | None = None,
        **fields,
    ) -> QuizQuestion:
        """
        Create a question in a quiz or a question bank.

        The payload is validated for the question type and stored in its
        normalized form. Quiz questions are appended after the current last
        active question.

        Raises:
            ValidationFailure: Missing text, bad points or invalid payload
            NotFound: Unknown quiz, bank or section
        """
        _reject_unknown(fields, QUESTION_FIELDS, "question")
        values = self._question_values(question_text, question_type, payload, fields)

        quiz_id = values.get("quiz_id")
        if quiz_id is not None:
            self.repo.require_quiz(quiz_id)
            values["question_order"] = self.repo.max_question_order(quiz_id) + 1
        if values.get("question_bank_id") is not None:
            self.repo.require_bank(values["question_bank_id"])
        if quiz_id is None and values.get("question_bank_id") is None:
            raise ValidationFailure("A question must belong to a quiz or a question bank")
        self._check_section(values.get("section_id"), quiz_id)

        question = self.repo.add(QuizQuestion(is_active=True, **values))
        self._refresh_counts(question)
        logger.info(f"Question created: {question.id} ({question.question_type.value}) for quiz {quiz_id}")
        return question

    def update_question(self, question_id: int, **updates) -> QuizQuestion:
        question = self.repo.require_question(question_id)
        _reject_unknown(updates, QUESTION_FIELDS - {"quiz_id"}, "question")

        question_type = QuestionType.parse(updates.get("question_type", question.question_type))
        payload = updates.get("payload", question.payload)
        if "question_type" in updates or "payload" in updates:
            updates["question_type"] = question_type
            updates["payload"] = parse_payload(question_type, payload).to_dict()
        if "question_text" in updates and not (updates["question_text"] or "").strip():
            raise ValidationFailure("Question text is required")
        if "points" in updates and (updates["points"] is None or updates["points"] <= 0):
            raise ValidationFailure("Points must be greater than 0")
        if updates.get("difficulty_level") is not None:
            updates["difficulty_level"] = DifficultyLevel.parse(updates["difficulty_level"])
        if "section_id" in updates:
            self._check_section(updates["section_id"], question.quiz_id)

        for key, value in updates.items():
            setattr(question, key, value)
        self.repo.flush()
        logger.info(f"Question updated: {question_id}")
        return question

    def deactivate_question(self, question_id: int) -> QuizQuestion:
        """Soft delete a question and close the gap in its quiz's ordering."""
        question = self.repo.require_question(question_id)
        question.is_active = False
        self.repo.flush()
        if question.quiz_id is not None:
            self._compact_order(question.quiz_id)
        self._refresh_counts(question)
        logger.info(f"Question deactivated: {question_id}")
        return question

    def duplicate_question(self, question_id: int, target_quiz_id: int | None = None) -> QuizQuestion:
        original = self.repo.require_question(question_id)
        fields = {
            name: getattr(original, name)
            for name in QUESTION_FIELDS - {"question_text", "question_type", "payload", "quiz_id"}
        }
        fields["quiz_id"] = target_quiz_id if target_quiz_id is not None else original.quiz_id
        if fields["quiz_id"] != original.quiz_id:
            fields["section_id"] = None
        return self.create_question(
            original.question_text,
            original.question_type,
            dict(original.payload or {}),
            **fields,
        )

    def bulk_create_questions(self, questions: Iterable[Dict[str, Any]]) -> List[QuizQuestion]:
        """Create several questions; the first invalid one aborts the batch."""
        created = []
        for index, data in enumerate(questions, start=1):
            data = dict(data)
            try:
                created.append(
                    self.create_question(
                        data.pop("question_text", ""),
                        data.pop("question_type", QuestionType.MULTIPLE_CHOICE),
                        data.pop("payload", None),
                        **data,
                    )
                )
            except ValidationFailure as exc:
                raise ValidationFailure([f"Question {index}: {e}" for e in exc.errors]) from exc
        return created

    def reorder_questions(self, quiz_id: int, question_ids: Sequence[int]) -> List[QuizQuestion]:
        """Assign orders 1..n following ``question_ids``; must list every active question."""
        self.repo.require_quiz(quiz_id)
        active = self.repo.quiz_questions(quiz_id)
        if sorted(question_ids) != sorted(q.id for q in active) or len(set(question_ids)) != len(question_ids):
            raise ValidationFailure("Reorder must list every active question of the quiz exactly once")

        by_id = {q.id: q for q in active}
        for position, question_id in enumerate(question_ids, start=1):
            by_id[question_id].question_order = position
        self.repo.flush()
        logger.info(f"Questions reordered for quiz {quiz_id}")
        return [by_id[qid] for qid in question_ids]

    def quiz_questions(self, quiz_id: int, include_inactive: bool = False) -> List[QuizQuestion]:
        self.repo.require_quiz(quiz_id)
        return self.repo.quiz_questions(
            quiz_id,
            active_only=not include_inactive,
            limit=self.settings.question_fetch_limit,
        )

    # ========================================
    # Sections
    # ========================================

    def create_section(self, quiz_id: int, title: str, **fields) -> QuizSection:
        self.repo.require_quiz(quiz_id)
        _reject_unknown(fields, SECTION_FIELDS, "section")
        if not (title or "").strip():
            raise ValidationFailure("Section title is required")
        if fields.get("questions_required") is not None and fields["questions_required"] < 0:
            raise ValidationFailure("questions_required cannot be negative")
        order = len(self.repo.quiz_sections(quiz_id)) + 1
        section = self.repo.add(QuizSection(quiz_id=quiz_id, title=title, order=order, **fields))
        logger.info(f"Section created: {section.id} in quiz {quiz_id}")
        return section

    def quiz_sections(self, quiz_id: int) -> List[QuizSection]:
        self.repo.require_quiz(quiz_id)
        return self.repo.quiz_sections(quiz_id)

    # ========================================
    # Question Banks
    # ========================================

    def create_question_bank(self, title: str, **fields) -> QuestionBank:
        _reject_unknown(fields, BANK_FIELDS, "question bank")
        if not (title or "").strip():
            raise ValidationFailure("Question bank title is required")
        bank = self.repo.add(QuestionBank(title=title, question_count=0, **fields))
        logger.info(f"Question bank created: {bank.id} {title!r}")
        return bank

    def list_question_banks(self, category: str | None = None, public_only: bool = False) -> List[QuestionBank]:
        return self.repo.list_banks(category=category, public_only=public_only)

    def add_questions_to_bank(self, bank_id: int, question_ids: Sequence[int]) -> QuestionBank:
        bank = self.repo.require_bank(bank_id)
        for question_id in question_ids:
            self.repo.require_question(question_id).question_bank_id = bank_id
        self.repo.flush()
        bank.question_count = self.repo.count_bank_questions(bank_id)
        self.repo.flush()
        logger.info(f"Added {len(question_ids)} questions to bank {bank_id}")
        return bank

    def questions_from_bank(
        self,
        bank_id: int,
        category: str | None = None,
        difficulty: DifficultyLevel | str | None = None,
        question_type: QuestionType | str | None = None,
        limit: int | None = None,
        randomize: bool = False,
        seed: int | None = None,
    ) -> List[QuizQuestion]:
        self.repo.require_bank(bank_id)
        questions = self.repo.bank_questions(
            bank_id,
            category=category,
            difficulty=DifficultyLevel.parse(difficulty) if difficulty else None,
            question_type=QuestionType.parse(question_type) if question_type else None,
            limit=None if randomize else (limit or self.settings.question_fetch_limit),
        )
        if randomize:
            random.Random(seed).shuffle(questions)
        if limit is not None:
            questions = questions[:limit]
        return questions

    # ========================================
    # Helpers
    # ========================================

    def _question_values(
        self,
        question_text: str,
        question_type: QuestionType | str,
        payload: Dict[str, Any] | None,
        fields: Dict[str, Any],
    ) -> Dict[str, Any]:
        errors = []
        if not (question_text or "").strip():
            errors.append("Question text is required")
        try:
            question_type = QuestionType.parse(question_type)
        except ValueError as exc:
            raise ValidationFailure(str(exc)) from exc

        values = {k: v for k, v in fields.items() if v is not None}
        values.setdefault("points", self.settings.default_question_points)
        if values["points"] <= 0:
            errors.append("Points must be greater than 0")
        try:
            values["difficulty_level"] = DifficultyLevel.parse(values.get("difficulty_level"))
        except ValueError as exc:
            errors.append(str(exc))

        try:
            values["payload"] = parse_payload(question_type, payload).to_dict()
        except ValidationFailure as exc:
            errors.extend(exc.errors)

        if errors:
            raise ValidationFailure(errors)

        values["question_text"] = question_text
        values["question_type"] = question_type
        return values

    def _check_section(self, section_id: int | None, quiz_id: int | None) -> None:
        if section_id is None:
            return
        section = self.repo.get_section(section_id)
        if section is None or section.quiz_id != quiz_id:
            raise ValidationFailure(f"Section {section_id} does not belong to quiz {quiz_id}")

    def _compact_order(self, quiz_id: int) -> None:
        for position, question in enumerate(self.repo.quiz_questions(quiz_id), start=1):
            question.question_order = position
        self.repo.flush()

    def _refresh_counts(self, question: QuizQuestion) -> None:
        if question.quiz_id is not None:
            quiz = self.repo.require_quiz(question.quiz_id)
            quiz.question_count = self.repo.count_active_questions(question.quiz_id)
        if question.question_bank_id is not None:
            bank = self.repo.require_bank(question.question_bank_id)
            bank.question_count = self.repo.count_bank_questions(question.question_bank_id)
        self.repo.flush()
