"""
CSV bulk import and export of questions.

Layout (one header row):
    QuestionText, QuestionType, OptionA, OptionB, OptionC, OptionD,
    CorrectAnswer, Explanation, Points, Difficulty

CorrectAnswer holds an option key for single-answer choice types, a
``;``-separated list of keys for Multiple Select, and a ``;``-separated
list of accepted answers for Short Answer. Other question types cannot be
expressed in this layout.
"""
from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from loguru import logger

from .authoring import QuizAuthoring
from .enums import QuestionType
from .errors import ValidationFailure

CSV_HEADER = [
    "QuestionText",
    "QuestionType",
    "OptionA",
    "OptionB",
    "OptionC",
    "OptionD",
    "CorrectAnswer",
    "Explanation",
    "Points",
    "Difficulty",
]
OPTION_KEYS = ("A", "B", "C", "D")
CSV_TYPES = frozenset(
    {
        QuestionType.MULTIPLE_CHOICE,
        QuestionType.TRUE_FALSE,
        QuestionType.IMAGE_CHOICE,
        QuestionType.MULTIPLE_SELECT,
        QuestionType.SHORT_ANSWER,
    }
)


@dataclass
class CsvImportResult:
    imported: int = 0
    errors: List[str] = field(default_factory=list)
    question_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"imported": self.imported, "errors": list(self.errors), "question_ids": list(self.question_ids)}


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(";") if part.strip()]


def row_to_question(row: List[str]) -> Dict[str, Any]:
    """
    Translate one CSV row into create_question() arguments.

    Raises:
        ValidationFailure: The row cannot describe a question
    """
    cells = [cell.strip() for cell in row] + [""] * (len(CSV_HEADER) - len(row))
    text, type_name, a, b, c, d, correct, explanation, points, difficulty = cells[: len(CSV_HEADER)]

    try:
        question_type = QuestionType.parse(type_name) if type_name else QuestionType.MULTIPLE_CHOICE
    except ValueError as exc:
        raise ValidationFailure(str(exc)) from exc
    if question_type not in CSV_TYPES:
        raise ValidationFailure(f"Question type '{question_type.value}' is not supported in CSV import")

    options = {key: value for key, value in zip(OPTION_KEYS, (a, b, c, d)) if value}
    if question_type is QuestionType.MULTIPLE_SELECT:
        payload: Dict[str, Any] = {"options": options, "correct_answers": [k.upper() for k in _split(correct)]}
    elif question_type is QuestionType.SHORT_ANSWER:
        payload = {"accepted_answers": _split(correct)}
    elif question_type is QuestionType.TRUE_FALSE and not options:
        payload = {"correct_answer": correct}
    else:
        payload = {"options": options, "correct_answer": correct.upper() if len(correct) == 1 else correct}

    question: Dict[str, Any] = {
        "question_text": text,
        "question_type": question_type,
        "payload": payload,
        "explanation": explanation or None,
        "difficulty_level": difficulty or None,
    }
    if points:
        try:
            question["points"] = float(points)
        except ValueError as exc:
            raise ValidationFailure(f"Invalid points value: {points!r}") from exc
    return question


def import_questions_from_csv(authoring: QuizAuthoring, quiz_id: int, data: str) -> CsvImportResult:
    """
    Create questions in a quiz from CSV text.

    Bad rows are skipped and reported as "Line N: reason" (N is the
    1-based line the row starts on); they never abort the batch.
    """
    authoring.repo.require_quiz(quiz_id)
    result = CsvImportResult()
    reader = csv.reader(io.StringIO(data))

    try:
        next(reader, None)  # Skip header
        last_line = reader.line_num
        for row in reader:
            line, last_line = last_line + 1, reader.line_num
            if not any(cell.strip() for cell in row):
                continue
            try:
                fields = row_to_question(row)
                question = authoring.create_question(
                    fields.pop("question_text"),
                    fields.pop("question_type"),
                    fields.pop("payload"),
                    quiz_id=quiz_id,
                    **fields,
                )
            except ValidationFailure as exc:
                result.errors.append(f"Line {line}: {'; '.join(exc.errors)}")
                continue
            result.imported += 1
            result.question_ids.append(question.id)
    except csv.Error as exc:
        result.errors.append(f"Line {reader.line_num}: {exc}")

    logger.info(f"CSV import into quiz {quiz_id}: {result.imported} imported, {len(result.errors)} errors")
    return result


def _option_letters(options: Dict[str, str]) -> Dict[str, str]:
    """Map stored option keys onto the A-D columns."""
    return {key: letter for key, letter in zip(options, OPTION_KEYS)}


def question_to_row(question: Any) -> List[str] | None:
    question_type = QuestionType.parse(question.question_type)
    if question_type not in CSV_TYPES:
        return None

    payload = question.payload or {}
    options = payload.get("options") or {}
    letters = _option_letters(options)
    option_cells = [options[key] for key in list(options)[: len(OPTION_KEYS)]]
    option_cells += [""] * (len(OPTION_KEYS) - len(option_cells))

    if question_type is QuestionType.MULTIPLE_SELECT:
        correct = ";".join(letters.get(k, k) for k in payload.get("correct_answers", []))
    elif question_type is QuestionType.SHORT_ANSWER:
        correct = ";".join(payload.get("accepted_answers", []))
    else:
        key = payload.get("correct_answer", "")
        correct = letters.get(key, key)

    return [
        question.question_text,
        question_type.value,
        *option_cells,
        correct,
        question.explanation or "",
        f"{question.points:g}",
        getattr(question.difficulty_level, "value", question.difficulty_level) or "",
    ]


def export_questions_to_csv(questions: Iterable[Any]) -> str:
    """Write questions in the import layout; types the layout cannot express are skipped."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for question in questions:
        row = question_to_row(question)
        if row is None:
            logger.warning(f"Question {question.id} ({question.question_type}) skipped in CSV export")
            continue
        writer.writerow(row)
    return buffer.getvalue()
