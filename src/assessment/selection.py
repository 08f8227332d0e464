"""
Question selection for a new attempt.

Builds the served question set from a quiz's active questions:
1. Start from active questions ordered by question_order
2. Sections with questions_required draw that many of their questions
3. Shuffle the whole set when the quiz randomizes questions
4. Cap at question_pool_size

Randomness is reproducible: the same (quiz, user, attempt number) always
serves the same questions in the same order, and the same option order.
"""
from __future__ import annotations

import hashlib
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from .enums import QuestionType


@dataclass
class ServedQuestion:
    """A question as served to one attempt."""
    question: Any
    option_order: List[str] | None = None  # set when the quiz randomizes options

    def to_dict(self) -> dict:
        """Client view of the question; answer keys are never included."""
        question = self.question
        question_type = QuestionType.parse(question.question_type)
        return {
            "question_id": question.id,
            "question_text": question.question_text,
            "question_type": question_type.value,
            "question_image": question.question_image,
            "points": question.points,
            "hint": question.hint,
            "time_limit_seconds": question.time_limit_seconds,
            "content": public_content(question_type, question.payload or {}, self.option_order),
        }


def public_content(question_type: QuestionType, payload: Dict[str, Any], order: List[str] | None = None) -> dict:
    """Strip answer keys from a payload, keeping what a client needs to render it."""
    if question_type.is_choice or question_type is QuestionType.MULTIPLE_SELECT:
        options = payload.get("options") or {}
        keys = order if order is not None else list(options)
        content: Dict[str, Any] = {"options": [{"key": k, "text": options[k]} for k in keys if k in options]}
        if payload.get("option_images"):
            content["option_images"] = dict(payload["option_images"])
        return content
    if question_type is QuestionType.FILL_IN_BLANK:
        return {"blanks": sorted(b["position"] for b in payload.get("blanks", []))}
    if question_type is QuestionType.MATCHING:
        pairs = payload.get("pairs", [])
        return {
            "left": [p["left"] for p in pairs],
            "right": sorted(p["right"] for p in pairs),
        }
    if question_type is QuestionType.ORDERING:
        items = sorted(payload.get("items", []), key=lambda i: str(i["id"]))
        return {"items": [{"id": i["id"], "text": i.get("text", "")} for i in items]}
    if question_type is QuestionType.RATING_SCALE:
        return {
            "scale_min": payload.get("scale_min"),
            "scale_max": payload.get("scale_max"),
            "labels": payload.get("labels") or {},
        }
    if question_type is QuestionType.HOTSPOT:
        return {"image_url": payload.get("image_url")}
    if question_type is QuestionType.ESSAY:
        return {
            "min_word_count": payload.get("min_word_count"),
            "max_word_count": payload.get("max_word_count"),
        }
    return {}


def create_seed(seed: str | int) -> int:
    """Create a reproducible integer seed from string or int."""
    if isinstance(seed, int):
        return seed

    # Hash string to create seed
    hash_bytes = hashlib.sha256(str(seed).encode()).digest()
    return int.from_bytes(hash_bytes[:8], byteorder="big")


def attempt_rng(quiz_id: int, user_id: str, attempt_number: int, salt: str = "") -> random.Random:
    return random.Random(create_seed(f"{user_id}:{quiz_id}:{attempt_number}{salt}"))


def select_questions(
    quiz: Any,
    questions: Sequence[Any],
    sections: Sequence[Any],
    user_id: str,
    attempt_number: int,
) -> List[Any]:
    """
    Choose and order the questions served to one attempt.

    Args:
        quiz: Quiz record (randomize_questions, question_pool_size)
        questions: Candidate questions (inactive ones are dropped)
        sections: The quiz's sections in order
        user_id: Attempting user
        attempt_number: 1-based attempt number

    Returns:
        Questions in served order
    """
    rng = attempt_rng(quiz.id, user_id, attempt_number)
    ordered = sorted(
        (q for q in questions if q.is_active),
        key=lambda q: (q.question_order, q.id or 0),
    )

    members: Dict[int, List[Any]] = {}
    for question in ordered:
        if question.section_id is not None:
            members.setdefault(question.section_id, []).append(question)

    # Drawn questions fill the first slots their section occupies
    drawn: Dict[int, List[Any]] = {}
    for section in sections:
        pool = list(members.get(section.id, []))
        if section.randomize_within_section:
            rng.shuffle(pool)
        if section.questions_required is not None:
            pool = pool[: max(section.questions_required, 0)]
        drawn[section.id] = pool

    selected: List[Any] = []
    for question in ordered:
        pool = drawn.get(question.section_id) if question.section_id is not None else None
        if pool is None:
            selected.append(question)
        elif pool:
            selected.append(pool.pop(0))

    if quiz.randomize_questions:
        rng.shuffle(selected)

    if quiz.question_pool_size:
        selected = selected[: quiz.question_pool_size]

    return selected


def option_order(question: Any, quiz_id: int, user_id: str, attempt_number: int) -> List[str] | None:
    """Per-attempt option key order for option-based question types."""
    question_type = QuestionType.parse(question.question_type)
    if not (question_type.is_choice or question_type is QuestionType.MULTIPLE_SELECT):
        return None
    keys = list((question.payload or {}).get("options", {}).keys())
    rng = attempt_rng(quiz_id, user_id, attempt_number, salt=f":options:{question.id}")
    rng.shuffle(keys)
    return keys


def served_questions(attempt: Any, quiz: Any, questions: Sequence[Any]) -> List[ServedQuestion]:
    """
    Questions of an attempt in served order.

    ``questions`` may be in any order; the attempt's stored question_ids
    decide the sequence.
    """
    by_id = {q.id: q for q in questions}
    served = []
    for question_id in attempt.question_ids or []:
        question = by_id.get(question_id)
        if question is None:
            continue
        order = (
            option_order(question, quiz.id, attempt.user_id, attempt.attempt_number)
            if quiz.randomize_options
            else None
        )
        served.append(ServedQuestion(question=question, option_order=order))
    return served
