"""
Type-specific question payloads and submitted responses.

Each question type owns exactly one payload shape. Payloads are stored as
JSON on the question row and parsed back into one of the frozen dataclasses
below, selected by ``question_type`` - never by sniffing which keys are
present.

Payload JSON per type:

Multiple Choice / True/False / Image Choice:
    {"options": {"A": "...", "B": "..."}, "correct_answer": "B",
     "option_images": {"A": "https://..."}}

Multiple Select:
    {"options": {"A": "...", "B": "...", "C": "..."}, "correct_answers": ["A", "C"]}

Short Answer:
    {"accepted_answers": ["TCP", "Transmission Control Protocol"], "case_sensitive": false}

Fill in the Blank:
    {"blanks": [{"position": 1, "accepted_answers": ["7"]}], "case_sensitive": false}

Matching:
    {"pairs": [{"left": "HTTP", "right": "80"}, {"left": "HTTPS", "right": "443"}]}

Ordering:
    {"items": [{"id": "a", "text": "Plan", "correct_order": 1}, ...]}

Rating Scale:
    {"scale_min": 1, "scale_max": 5, "correct_rating": 4, "tolerance": 0,
     "labels": {"min": "Never", "max": "Always"}}

Hotspot:
    {"image_url": "...", "regions": [{"x": 0, "y": 0, "width": 10, "height": 10,
                                      "is_correct": true}]}

Essay:
    {"min_word_count": 50, "max_word_count": 500, "rubric_id": null}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Union

from .enums import QuestionType
from .errors import ValidationFailure


def _require_list(data: dict, key: str, errors: list[str], label: str) -> list:
    value = data.get(key)
    if value is None:
        errors.append(f"{label} requires '{key}'")
        return []
    if not isinstance(value, list):
        errors.append(f"{label} '{key}' must be a list")
        return []
    return value


def _str_options(data: dict, errors: list[str], label: str) -> dict[str, str]:
    raw = data.get("options")
    if not isinstance(raw, dict):
        errors.append(f"{label} requires 'options' mapping of key -> text")
        return {}
    options = {str(k): str(v) for k, v in raw.items() if v not in (None, "")}
    if len(options) < 2:
        errors.append(f"{label} requires at least 2 options")
    return options


# ========================================
# Payload Variants
# ========================================


@dataclass(frozen=True)
class ChoicePayload:
    """Single-answer choice (Multiple Choice, True/False, Image Choice)."""

    options: dict[str, str]
    correct_answer: str
    option_images: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict, question_type: QuestionType) -> ChoicePayload:
        errors: list[str] = []
        label = question_type.value
        if question_type is QuestionType.TRUE_FALSE and "options" not in data:
            data = {**data, "options": {"True": "True", "False": "False"}}
        options = _str_options(data, errors, label)
        correct = data.get("correct_answer")
        if correct in (None, ""):
            errors.append(f"{label} requires 'correct_answer'")
        elif options and str(correct) not in options:
            errors.append(f"{label} 'correct_answer' {correct!r} is not one of the options")
        if errors:
            raise ValidationFailure(errors)
        images = data.get("option_images") or {}
        return cls(
            options=options,
            correct_answer=str(correct),
            option_images={str(k): str(v) for k, v in images.items()},
        )

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"options": dict(self.options), "correct_answer": self.correct_answer}
        if self.option_images:
            data["option_images"] = dict(self.option_images)
        return data


@dataclass(frozen=True)
class MultipleSelectPayload:
    options: dict[str, str]
    correct_answers: tuple[str, ...]

    @classmethod
    def from_dict(cls, data: dict) -> MultipleSelectPayload:
        errors: list[str] = []
        label = QuestionType.MULTIPLE_SELECT.value
        options = _str_options(data, errors, label)
        correct = [str(a) for a in _require_list(data, "correct_answers", errors, label) if a]
        if not correct and not errors:
            errors.append(f"{label} requires at least one correct answer")
        unknown = [a for a in correct if options and a not in options]
        if unknown:
            errors.append(f"{label} correct answers {unknown} are not options")
        if errors:
            raise ValidationFailure(errors)
        return cls(options=options, correct_answers=tuple(dict.fromkeys(correct)))

    def to_dict(self) -> dict:
        return {"options": dict(self.options), "correct_answers": list(self.correct_answers)}


@dataclass(frozen=True)
class ShortAnswerPayload:
    accepted_answers: tuple[str, ...]
    case_sensitive: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> ShortAnswerPayload:
        errors: list[str] = []
        label = QuestionType.SHORT_ANSWER.value
        accepted = [str(a) for a in _require_list(data, "accepted_answers", errors, label)]
        accepted = [a for a in accepted if a.strip()]
        if not accepted and not errors:
            errors.append(f"{label} requires at least one accepted answer")
        if errors:
            raise ValidationFailure(errors)
        return cls(accepted_answers=tuple(accepted), case_sensitive=bool(data.get("case_sensitive", False)))

    def to_dict(self) -> dict:
        return {"accepted_answers": list(self.accepted_answers), "case_sensitive": self.case_sensitive}


@dataclass(frozen=True)
class Blank:
    position: int
    accepted_answers: tuple[str, ...]


@dataclass(frozen=True)
class FillInBlankPayload:
    blanks: tuple[Blank, ...]
    case_sensitive: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> FillInBlankPayload:
        errors: list[str] = []
        label = QuestionType.FILL_IN_BLANK.value
        raw = _require_list(data, "blanks", errors, label)
        blanks = []
        for i, item in enumerate(raw):
            accepted = [str(a) for a in (item.get("accepted_answers") or []) if str(a).strip()]
            if not accepted:
                errors.append(f"{label} blank {i + 1} requires at least one accepted answer")
                continue
            blanks.append(Blank(position=int(item.get("position", i + 1)), accepted_answers=tuple(accepted)))
        if not raw and not errors:
            errors.append(f"{label} requires at least one blank")
        if errors:
            raise ValidationFailure(errors)
        blanks.sort(key=lambda b: b.position)
        return cls(blanks=tuple(blanks), case_sensitive=bool(data.get("case_sensitive", False)))

    def to_dict(self) -> dict:
        return {
            "blanks": [
                {"position": b.position, "accepted_answers": list(b.accepted_answers)} for b in self.blanks
            ],
            "case_sensitive": self.case_sensitive,
        }


@dataclass(frozen=True)
class MatchingPair:
    left: str
    right: str


@dataclass(frozen=True)
class MatchingPayload:
    pairs: tuple[MatchingPair, ...]

    @classmethod
    def from_dict(cls, data: dict) -> MatchingPayload:
        errors: list[str] = []
        label = QuestionType.MATCHING.value
        raw = _require_list(data, "pairs", errors, label)
        pairs = []
        for i, pair in enumerate(raw):
            if not isinstance(pair, dict) or "left" not in pair or "right" not in pair:
                errors.append(f"{label} pair {i} requires 'left' and 'right'")
                continue
            pairs.append(MatchingPair(left=str(pair["left"]), right=str(pair["right"])))
        if not raw and not errors:
            errors.append(f"{label} requires at least one pair")
        lefts = [p.left for p in pairs]
        if len(set(lefts)) != len(lefts):
            errors.append(f"{label} left-hand terms must be unique")
        if errors:
            raise ValidationFailure(errors)
        return cls(pairs=tuple(pairs))

    def to_dict(self) -> dict:
        return {"pairs": [{"left": p.left, "right": p.right} for p in self.pairs]}


@dataclass(frozen=True)
class OrderingItem:
    id: str
    text: str
    correct_order: int


@dataclass(frozen=True)
class OrderingPayload:
    items: tuple[OrderingItem, ...]

    @classmethod
    def from_dict(cls, data: dict) -> OrderingPayload:
        errors: list[str] = []
        label = QuestionType.ORDERING.value
        raw = _require_list(data, "items", errors, label)
        items = []
        for i, item in enumerate(raw):
            if not isinstance(item, dict) or "id" not in item or "correct_order" not in item:
                errors.append(f"{label} item {i} requires 'id' and 'correct_order'")
                continue
            items.append(
                OrderingItem(id=str(item["id"]), text=str(item.get("text", "")), correct_order=int(item["correct_order"]))
            )
        if len(raw) < 2 and not errors:
            errors.append(f"{label} requires at least 2 items")
        if items and sorted(i.correct_order for i in items) != list(range(1, len(items) + 1)):
            errors.append(f"{label} correct_order values must be 1..{len(items)} with no gaps")
        if len({i.id for i in items}) != len(items):
            errors.append(f"{label} item ids must be unique")
        if errors:
            raise ValidationFailure(errors)
        return cls(items=tuple(items))

    def to_dict(self) -> dict:
        return {
            "items": [{"id": i.id, "text": i.text, "correct_order": i.correct_order} for i in self.items]
        }


@dataclass(frozen=True)
class RatingScalePayload:
    scale_min: float
    scale_max: float
    correct_rating: float
    tolerance: float = 0.0
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def scale_range(self) -> float:
        return self.scale_max - self.scale_min

    @classmethod
    def from_dict(cls, data: dict) -> RatingScalePayload:
        label = QuestionType.RATING_SCALE.value
        try:
            scale_min = float(data.get("scale_min", 1))
            scale_max = float(data.get("scale_max", 5))
            correct = float(data["correct_rating"])
            tolerance = float(data.get("tolerance") or 0)
        except KeyError:
            raise ValidationFailure(f"{label} requires 'correct_rating'")
        except (TypeError, ValueError):
            raise ValidationFailure(f"{label} bounds, rating and tolerance must be numbers")
        errors = []
        if scale_min >= scale_max:
            errors.append(f"{label} 'scale_min' must be below 'scale_max'")
        elif not scale_min <= correct <= scale_max:
            errors.append(f"{label} 'correct_rating' must lie within the scale")
        if tolerance < 0:
            errors.append(f"{label} 'tolerance' cannot be negative")
        if errors:
            raise ValidationFailure(errors)
        return cls(
            scale_min=scale_min,
            scale_max=scale_max,
            correct_rating=correct,
            tolerance=tolerance,
            labels={str(k): str(v) for k, v in (data.get("labels") or {}).items()},
        )

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "scale_min": self.scale_min,
            "scale_max": self.scale_max,
            "correct_rating": self.correct_rating,
            "tolerance": self.tolerance,
        }
        if self.labels:
            data["labels"] = dict(self.labels)
        return data


@dataclass(frozen=True)
class HotspotRegion:
    x: float
    y: float
    width: float
    height: float
    is_correct: bool = False

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height


@dataclass(frozen=True)
class HotspotPayload:
    regions: tuple[HotspotRegion, ...]
    image_url: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> HotspotPayload:
        errors: list[str] = []
        label = QuestionType.HOTSPOT.value
        raw = _require_list(data, "regions", errors, label)
        regions = []
        for i, region in enumerate(raw):
            try:
                parsed = HotspotRegion(
                    x=float(region["x"]),
                    y=float(region["y"]),
                    width=float(region["width"]),
                    height=float(region["height"]),
                    is_correct=bool(region.get("is_correct", False)),
                )
            except (KeyError, TypeError, ValueError):
                errors.append(f"{label} region {i} requires numeric x, y, width and height")
                continue
            if parsed.width < 0 or parsed.height < 0:
                errors.append(f"{label} region {i} has a negative size")
            regions.append(parsed)
        if raw and not any(r.is_correct for r in regions) and not errors:
            errors.append(f"{label} requires at least one correct region")
        if not raw and not errors:
            errors.append(f"{label} requires at least one region")
        if errors:
            raise ValidationFailure(errors)
        return cls(regions=tuple(regions), image_url=str(data.get("image_url", "")))

    def to_dict(self) -> dict:
        return {
            "image_url": self.image_url,
            "regions": [
                {"x": r.x, "y": r.y, "width": r.width, "height": r.height, "is_correct": r.is_correct}
                for r in self.regions
            ],
        }


@dataclass(frozen=True)
class EssayPayload:
    min_word_count: int | None = None
    max_word_count: int | None = None
    rubric_id: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> EssayPayload:
        min_words = data.get("min_word_count")
        max_words = data.get("max_word_count")
        if min_words is not None and max_words is not None and int(min_words) > int(max_words):
            raise ValidationFailure("Essay 'min_word_count' exceeds 'max_word_count'")
        return cls(
            min_word_count=int(min_words) if min_words is not None else None,
            max_word_count=int(max_words) if max_words is not None else None,
            rubric_id=data.get("rubric_id"),
        )

    def to_dict(self) -> dict:
        return {
            "min_word_count": self.min_word_count,
            "max_word_count": self.max_word_count,
            "rubric_id": self.rubric_id,
        }


Payload = Union[
    ChoicePayload,
    MultipleSelectPayload,
    ShortAnswerPayload,
    FillInBlankPayload,
    MatchingPayload,
    OrderingPayload,
    RatingScalePayload,
    HotspotPayload,
    EssayPayload,
]


def parse_payload(question_type: QuestionType | str, data: dict | None) -> Payload:
    """
    Parse the stored JSON payload for a question type.

    Raises:
        ValidationFailure: If the payload is missing required fields.
    """
    question_type = QuestionType.parse(question_type)
    data = data or {}
    if question_type.is_choice:
        return ChoicePayload.from_dict(data, question_type)
    if question_type is QuestionType.MULTIPLE_SELECT:
        return MultipleSelectPayload.from_dict(data)
    if question_type is QuestionType.SHORT_ANSWER:
        return ShortAnswerPayload.from_dict(data)
    if question_type is QuestionType.FILL_IN_BLANK:
        return FillInBlankPayload.from_dict(data)
    if question_type is QuestionType.MATCHING:
        return MatchingPayload.from_dict(data)
    if question_type is QuestionType.ORDERING:
        return OrderingPayload.from_dict(data)
    if question_type is QuestionType.RATING_SCALE:
        return RatingScalePayload.from_dict(data)
    if question_type is QuestionType.HOTSPOT:
        return HotspotPayload.from_dict(data)
    if question_type is QuestionType.ESSAY:
        return EssayPayload.from_dict(data)
    raise ValidationFailure(f"Unsupported question type: {question_type}")


def validate_payload(question_type: QuestionType | str, data: dict | None) -> list[str]:
    """Return payload validation errors (empty if valid)."""
    try:
        parse_payload(question_type, data)
    except ValidationFailure as exc:
        return exc.errors
    except ValueError as exc:
        return [str(exc)]
    return []


# ========================================
# Grading Input
# ========================================


@dataclass(frozen=True)
class QuestionSpec:
    """Everything the grading engine needs to know about one question."""

    question_id: int | None
    question_type: QuestionType
    points: float
    payload: Payload
    partial_credit: bool = False
    negative_marking: bool = False
    negative_points: float = 0.0
    explanation: str = ""
    correct_feedback: str = ""
    incorrect_feedback: str = ""
    partial_feedback: str = ""

    @classmethod
    def from_record(cls, question: Any, allow_partial_credit: bool = False) -> QuestionSpec:
        """
        Build a spec from a stored question row.

        A question whose ``partial_credit_enabled`` is None inherits the
        quiz-level ``allow_partial_credit`` flag.
        """
        question_type = QuestionType.parse(question.question_type)
        partial = question.partial_credit_enabled
        return cls(
            question_id=question.id,
            question_type=question_type,
            points=float(question.points),
            payload=parse_payload(question_type, question.payload),
            partial_credit=allow_partial_credit if partial is None else bool(partial),
            negative_marking=bool(question.negative_marking),
            negative_points=float(question.negative_points or 0),
            explanation=question.explanation or "",
            correct_feedback=question.correct_feedback or "",
            incorrect_feedback=question.incorrect_feedback or "",
            partial_feedback=question.partial_feedback or "",
        )


# ========================================
# Submitted Responses
# ========================================


def _str_list(value: Any) -> list[str]:
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise TypeError("expected a list")
    return [str(item) for item in value]


def _decode_field(data: dict, name: str, convert: Callable[[Any], Any]) -> Any:
    value = data.get(name)
    if value is None:
        return None
    try:
        return convert(value)
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationFailure(f"Response field '{name}' is malformed: {exc}") from exc


@dataclass
class Response:
    """
    Raw response for one question, as collected client-side.

    Only the field that matches the question type is read during grading.
    """

    selected_answer: str | None = None
    selected_answers: list[str] | None = None
    fill_in_blanks: list[str] | None = None
    matching_answers: list[MatchingPair] | None = None
    ordering_answers: list[str] | None = None
    hotspot: tuple[float, float] | None = None
    rating_value: float | None = None
    essay_text: str | None = None
    time_spent: float | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> Response:
        """
        Decode a client response.

        Raises:
            ValidationFailure: A field is present but has the wrong shape
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ValidationFailure("Response must be an object")
        return cls(
            selected_answer=data.get("selected_answer"),
            selected_answers=_decode_field(data, "selected_answers", _str_list),
            fill_in_blanks=_decode_field(data, "fill_in_blanks", _str_list),
            matching_answers=_decode_field(
                data,
                "matching_answers",
                lambda items: [MatchingPair(left=str(m["left"]), right=str(m["right"])) for m in items],
            ),
            ordering_answers=_decode_field(data, "ordering_answers", _str_list),
            hotspot=_decode_field(
                {"hotspot": data.get("hotspot") or data.get("hotspot_coordinates") or None},
                "hotspot",
                lambda point: (float(point["x"]), float(point["y"])),
            ),
            rating_value=_decode_field(data, "rating_value", float),
            essay_text=data.get("essay_text"),
            time_spent=_decode_field(data, "time_spent", float),
        )

    def to_dict(self) -> dict:
        data: dict[str, Any] = {}
        if self.selected_answer is not None:
            data["selected_answer"] = self.selected_answer
        if self.selected_answers is not None:
            data["selected_answers"] = list(self.selected_answers)
        if self.fill_in_blanks is not None:
            data["fill_in_blanks"] = list(self.fill_in_blanks)
        if self.matching_answers is not None:
            data["matching_answers"] = [{"left": m.left, "right": m.right} for m in self.matching_answers]
        if self.ordering_answers is not None:
            data["ordering_answers"] = list(self.ordering_answers)
        if self.hotspot is not None:
            data["hotspot"] = {"x": self.hotspot[0], "y": self.hotspot[1]}
        if self.rating_value is not None:
            data["rating_value"] = self.rating_value
        if self.essay_text is not None:
            data["essay_text"] = self.essay_text
        if self.time_spent is not None:
            data["time_spent"] = self.time_spent
        return data

    def describe(self) -> str:
        """Flatten the response into a single string (used for wrong-answer tallies)."""
        if self.selected_answer:
            return self.selected_answer
        if self.selected_answers:
            return ", ".join(self.selected_answers)
        if self.fill_in_blanks:
            return " | ".join(self.fill_in_blanks)
        if self.matching_answers:
            return "; ".join(f"{m.left} -> {m.right}" for m in self.matching_answers)
        if self.ordering_answers:
            return " > ".join(self.ordering_answers)
        if self.hotspot is not None:
            return f"({self.hotspot[0]:g}, {self.hotspot[1]:g})"
        if self.rating_value is not None:
            return f"{self.rating_value:g}"
        return self.essay_text or ""
