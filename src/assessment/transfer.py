"""
Quiz snapshot export and import.

Snapshot layout:
    {
        "version": "1.0",
        "exportDate": "<ISO timestamp>",
        "quiz": {...},        # quiz settings without id or cached statistics
        "sections": [...],    # sections with their original ids, for remapping
        "questions": [...],   # questions without id, quiz_id or counters
    }
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from loguru import logger

from config import get_settings
from src.db.models import Quiz
from src.db.utils import to_naive_utc, utcnow

from .authoring import QUESTION_FIELDS, QUIZ_FIELDS, SECTION_FIELDS, QuizAuthoring
from .enums import QuizStatus
from .errors import ValidationFailure

SUPPORTED_VERSIONS = frozenset({"1.0"})

# Never exported: identity, cached statistics and per-instance bookkeeping
QUIZ_EXPORT_FIELDS = QUIZ_FIELDS - {"created_by_id", "question_bank_id"}
QUESTION_EXPORT_FIELDS = (QUESTION_FIELDS | {"question_order", "is_active"}) - {"quiz_id", "question_bank_id"}


def _plain(value: Any) -> Any:
    """JSON-friendly form of a column value."""
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    return value


def _parse_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    try:
        return to_naive_utc(datetime.fromisoformat(str(value)))
    except ValueError as exc:
        raise ValidationFailure(f"Invalid date in snapshot: {value!r}") from exc


class QuizTransfer:
    """Exports quizzes to snapshots and imports them as new quizzes."""

    def __init__(self, repo):
        self.repo = repo
        self.settings = get_settings()
        self.authoring = QuizAuthoring(repo)

    def export_quiz(self, quiz_id: int) -> Dict[str, Any]:
        quiz = self.repo.require_quiz(quiz_id)
        sections = self.repo.quiz_sections(quiz_id)
        questions = self.repo.quiz_questions(quiz_id)

        snapshot = {
            "version": self.settings.export_format_version,
            "exportDate": utcnow().isoformat(),
            "quiz": {name: _plain(getattr(quiz, name)) for name in sorted(QUIZ_EXPORT_FIELDS)},
            "sections": [
                {
                    "id": section.id,
                    "order": section.order,
                    **{name: getattr(section, name) for name in sorted(SECTION_FIELDS)},
                }
                for section in sections
            ],
            "questions": [
                {name: _plain(getattr(question, name)) for name in sorted(QUESTION_EXPORT_FIELDS)}
                for question in questions
            ],
        }
        logger.info(f"Quiz exported: {quiz_id} ({len(questions)} questions, {len(sections)} sections)")
        return snapshot

    def import_quiz(
        self,
        snapshot: Dict[str, Any],
        new_title: str | None = None,
        policy_id: int | None = None,
        as_draft: bool = False,
    ) -> Quiz:
        """
        Create a new quiz from a snapshot.

        Sections and questions get fresh ids; question section references
        are remapped onto the new sections.

        Raises:
            ValidationFailure: Unknown snapshot version or malformed content
        """
        if not isinstance(snapshot, dict):
            raise ValidationFailure("Snapshot must be a JSON object")
        version = snapshot.get("version")
        if version not in SUPPORTED_VERSIONS:
            logger.warning(f"Quiz import rejected: unsupported snapshot version {version!r}")
            raise ValidationFailure(f"Unsupported snapshot version: {version!r}")
        quiz_data = snapshot.get("quiz")
        if not isinstance(quiz_data, dict):
            raise ValidationFailure("Snapshot is missing 'quiz'")

        fields = {k: v for k, v in quiz_data.items() if k in QUIZ_EXPORT_FIELDS}
        for key in ("scheduled_start", "scheduled_end"):
            if key in fields:
                fields[key] = _parse_datetime(fields[key])
        title = new_title or fields.pop("title", None) or ""
        fields.pop("title", None)
        if policy_id is not None:
            fields["policy_id"] = policy_id

        status = QuizStatus(fields.pop("status", QuizStatus.DRAFT.value) or QuizStatus.DRAFT.value)
        quiz = self.authoring.create_quiz(title, **fields)

        section_map: Dict[int, int] = {}
        for data in sorted(snapshot.get("sections") or [], key=lambda s: s.get("order") or 0):
            section = self.authoring.create_section(
                quiz.id,
                data.get("title", ""),
                **{k: v for k, v in data.items() if k in SECTION_FIELDS - {"title"}},
            )
            if data.get("id") is not None:
                section_map[data["id"]] = section.id

        questions = sorted(snapshot.get("questions") or [], key=lambda q: q.get("question_order") or 0)
        for index, data in enumerate(questions, start=1):
            if data.get("is_active") is False:
                continue
            question_fields = {
                k: v
                for k, v in data.items()
                if k in QUESTION_FIELDS - {"quiz_id", "question_bank_id", "question_text", "question_type", "payload"}
            }
            question_fields["section_id"] = section_map.get(data.get("section_id")) if data.get("section_id") else None
            try:
                self.authoring.create_question(
                    data.get("question_text", ""),
                    data.get("question_type", ""),
                    data.get("payload"),
                    quiz_id=quiz.id,
                    **question_fields,
                )
            except ValidationFailure as exc:
                raise ValidationFailure([f"Question {index}: {e}" for e in exc.errors]) from exc

        if not as_draft and status is not QuizStatus.DRAFT:
            if status is QuizStatus.PUBLISHED:
                self.authoring.publish_quiz(quiz.id)
            else:
                quiz.status = status

        logger.info(f"Quiz imported: {quiz.id} {quiz.title!r} ({len(questions)} questions)")
        return quiz
