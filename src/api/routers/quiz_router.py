"""
Quiz router for quiz authoring.

Endpoints for:
- Quiz CRUD, publish, schedule and archive
- Question create/update/deactivate/duplicate/reorder
- CSV question import/export
- Sections and question banks
- Quiz snapshot export/import
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from src.api.dependencies import get_repository
from src.assessment.authoring import QuizAuthoring
from src.assessment.csv_io import export_questions_to_csv, import_questions_from_csv
from src.assessment.enums import DifficultyLevel, QuestionType, QuizStatus
from src.assessment.transfer import QuizTransfer
from src.db.repository import QuizRepository

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class QuizCreateRequest(BaseModel):
    """Request model for creating a quiz. Omitted settings use configured defaults."""

    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    policy_id: Optional[int] = None
    policy_title: Optional[str] = None
    category: Optional[str] = None
    difficulty_level: Optional[DifficultyLevel] = None
    passing_score: Optional[int] = Field(None, ge=0, le=100)
    time_limit_minutes: Optional[int] = Field(None, ge=0)
    max_attempts: Optional[int] = Field(None, ge=1)
    randomize_questions: Optional[bool] = None
    randomize_options: Optional[bool] = None
    show_correct_answers: Optional[bool] = None
    show_explanations: Optional[bool] = None
    allow_review: Optional[bool] = None
    allow_partial_credit: Optional[bool] = None
    question_bank_id: Optional[int] = None
    question_pool_size: Optional[int] = Field(None, ge=1)
    generate_certificate: Optional[bool] = None
    tags: Optional[str] = None
    created_by_id: Optional[int] = None


class QuizUpdateRequest(BaseModel):
    """Request model for updating a quiz; only provided fields change."""

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    policy_id: Optional[int] = None
    policy_title: Optional[str] = None
    category: Optional[str] = None
    difficulty_level: Optional[DifficultyLevel] = None
    passing_score: Optional[int] = Field(None, ge=0, le=100)
    time_limit_minutes: Optional[int] = Field(None, ge=0)
    max_attempts: Optional[int] = Field(None, ge=1)
    randomize_questions: Optional[bool] = None
    randomize_options: Optional[bool] = None
    show_correct_answers: Optional[bool] = None
    show_explanations: Optional[bool] = None
    allow_review: Optional[bool] = None
    allow_partial_credit: Optional[bool] = None
    is_active: Optional[bool] = None
    question_bank_id: Optional[int] = None
    question_pool_size: Optional[int] = Field(None, ge=1)
    generate_certificate: Optional[bool] = None
    tags: Optional[str] = None


class QuizResponse(BaseModel):
    """Response model for a quiz."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str]
    policy_id: Optional[int]
    policy_title: Optional[str]
    category: Optional[str]
    difficulty_level: DifficultyLevel
    status: QuizStatus
    is_active: bool
    passing_score: int
    time_limit_minutes: int
    max_attempts: int
    question_count: int
    question_pool_size: Optional[int]
    randomize_questions: bool
    randomize_options: bool
    show_correct_answers: bool
    show_explanations: bool
    allow_review: bool
    allow_partial_credit: bool
    generate_certificate: bool
    scheduled_start: Optional[datetime]
    scheduled_end: Optional[datetime]
    average_score: Optional[float]
    completion_rate: Optional[float]
    tags: Optional[str]


class ScheduleRequest(BaseModel):
    """Request model for scheduling a quiz."""

    start: datetime
    end: Optional[datetime] = None


class QuestionCreateRequest(BaseModel):
    """Request model for creating a question."""

    question_text: str = Field(..., min_length=1)
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE
    payload: Dict[str, Any] = Field(default_factory=dict, description="Type-specific question content")
    section_id: Optional[int] = None
    question_image: Optional[str] = None
    explanation: Optional[str] = None
    correct_feedback: Optional[str] = None
    incorrect_feedback: Optional[str] = None
    partial_feedback: Optional[str] = None
    hint: Optional[str] = None
    points: Optional[float] = Field(None, gt=0)
    partial_credit_enabled: Optional[bool] = None
    negative_marking: Optional[bool] = None
    negative_points: Optional[float] = Field(None, ge=0)
    difficulty_level: Optional[DifficultyLevel] = None
    category: Optional[str] = None
    tags: Optional[str] = None
    time_limit_seconds: Optional[int] = None
    is_required: Optional[bool] = None


class QuestionUpdateRequest(BaseModel):
    """Request model for updating a question; only provided fields change."""

    question_text: Optional[str] = None
    question_type: Optional[QuestionType] = None
    payload: Optional[Dict[str, Any]] = None
    section_id: Optional[int] = None
    question_image: Optional[str] = None
    explanation: Optional[str] = None
    correct_feedback: Optional[str] = None
    incorrect_feedback: Optional[str] = None
    partial_feedback: Optional[str] = None
    hint: Optional[str] = None
    points: Optional[float] = Field(None, gt=0)
    partial_credit_enabled: Optional[bool] = None
    negative_marking: Optional[bool] = None
    negative_points: Optional[float] = Field(None, ge=0)
    difficulty_level: Optional[DifficultyLevel] = None
    category: Optional[str] = None
    tags: Optional[str] = None
    time_limit_seconds: Optional[int] = None
    is_required: Optional[bool] = None


class QuestionResponse(BaseModel):
    """Response model for a question (authoring view, includes answer keys)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    quiz_id: Optional[int]
    question_bank_id: Optional[int]
    section_id: Optional[int]
    question_text: str
    question_type: QuestionType
    payload: Dict[str, Any]
    points: float
    question_order: int
    difficulty_level: DifficultyLevel
    category: Optional[str]
    explanation: Optional[str]
    partial_credit_enabled: Optional[bool]
    negative_marking: bool
    negative_points: Optional[float]
    is_active: bool
    times_answered: int
    times_correct: int
    average_time: Optional[float]


class ReorderRequest(BaseModel):
    question_ids: List[int]


class CsvImportRequest(BaseModel):
    data: str = Field(..., description="CSV text including the header row")


class CsvImportResponse(BaseModel):
    imported: int
    errors: List[str]
    question_ids: List[int]


class SectionCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    randomize_within_section: bool = False
    questions_required: Optional[int] = Field(None, ge=0)


class SectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    quiz_id: int
    title: str
    description: Optional[str]
    order: int
    randomize_within_section: bool
    questions_required: Optional[int]


class BankCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[str] = None
    is_public: bool = False


class BankResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str]
    category: Optional[str]
    tags: Optional[str]
    is_public: bool
    question_count: int


class BankQuestionsRequest(BaseModel):
    question_ids: List[int]


class ImportRequest(BaseModel):
    """Request model for importing a quiz snapshot."""

    snapshot: Dict[str, Any]
    new_title: Optional[str] = None
    policy_id: Optional[int] = None
    as_draft: bool = False


def _provided(request: BaseModel) -> Dict[str, Any]:
    return request.model_dump(exclude_unset=True)


# ========================================
# Question Bank Endpoints
# ========================================


@router.get("/banks", response_model=List[BankResponse], summary="List question banks")
def list_banks(
    category: Optional[str] = None,
    public_only: bool = False,
    repo: QuizRepository = Depends(get_repository),
) -> List[BankResponse]:
    return QuizAuthoring(repo).list_question_banks(category=category, public_only=public_only)


@router.post("/banks", response_model=BankResponse, status_code=201, summary="Create question bank")
def create_bank(request: BankCreateRequest, repo: QuizRepository = Depends(get_repository)) -> BankResponse:
    data = _provided(request)
    return QuizAuthoring(repo).create_question_bank(data.pop("title"), **data)


@router.post("/banks/{bank_id}/questions", response_model=BankResponse, summary="Add questions to bank")
def add_bank_questions(
    bank_id: int,
    request: BankQuestionsRequest,
    repo: QuizRepository = Depends(get_repository),
) -> BankResponse:
    return QuizAuthoring(repo).add_questions_to_bank(bank_id, request.question_ids)


@router.get("/banks/{bank_id}/questions", response_model=List[QuestionResponse], summary="Questions in a bank")
def bank_questions(
    bank_id: int,
    category: Optional[str] = None,
    difficulty: Optional[DifficultyLevel] = None,
    question_type: Optional[QuestionType] = None,
    limit: Optional[int] = Query(None, ge=1),
    randomize: bool = False,
    repo: QuizRepository = Depends(get_repository),
) -> List[QuestionResponse]:
    return QuizAuthoring(repo).questions_from_bank(
        bank_id,
        category=category,
        difficulty=difficulty,
        question_type=question_type,
        limit=limit,
        randomize=randomize,
    )


# ========================================
# Question Endpoints (by question id)
# ========================================


@router.patch("/questions/{question_id}", response_model=QuestionResponse, summary="Update question")
def update_question(
    question_id: int,
    request: QuestionUpdateRequest,
    repo: QuizRepository = Depends(get_repository),
) -> QuestionResponse:
    return QuizAuthoring(repo).update_question(question_id, **_provided(request))


@router.delete("/questions/{question_id}", response_model=QuestionResponse, summary="Deactivate question")
def deactivate_question(question_id: int, repo: QuizRepository = Depends(get_repository)) -> QuestionResponse:
    return QuizAuthoring(repo).deactivate_question(question_id)


@router.post(
    "/questions/{question_id}/duplicate",
    response_model=QuestionResponse,
    status_code=201,
    summary="Duplicate question",
)
def duplicate_question(
    question_id: int,
    target_quiz_id: Optional[int] = None,
    repo: QuizRepository = Depends(get_repository),
) -> QuestionResponse:
    return QuizAuthoring(repo).duplicate_question(question_id, target_quiz_id)


# ========================================
# Import Endpoint
# ========================================


@router.post("/import", response_model=QuizResponse, status_code=201, summary="Import quiz snapshot")
def import_quiz(request: ImportRequest, repo: QuizRepository = Depends(get_repository)) -> QuizResponse:
    return QuizTransfer(repo).import_quiz(
        request.snapshot,
        new_title=request.new_title,
        policy_id=request.policy_id,
        as_draft=request.as_draft,
    )


# ========================================
# Quiz Endpoints
# ========================================


@router.get("", response_model=List[QuizResponse], summary="List quizzes")
def list_quizzes(
    status: Optional[QuizStatus] = None,
    category: Optional[str] = None,
    policy_id: Optional[int] = None,
    include_archived: bool = False,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    repo: QuizRepository = Depends(get_repository),
) -> List[QuizResponse]:
    return QuizAuthoring(repo).list_quizzes(
        status=status,
        category=category,
        policy_id=policy_id,
        include_archived=include_archived,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=QuizResponse, status_code=201, summary="Create quiz")
def create_quiz(request: QuizCreateRequest, repo: QuizRepository = Depends(get_repository)) -> QuizResponse:
    data = _provided(request)
    return QuizAuthoring(repo).create_quiz(data.pop("title"), **data)


@router.get("/{quiz_id}", response_model=QuizResponse, summary="Get quiz")
def get_quiz(quiz_id: int, repo: QuizRepository = Depends(get_repository)) -> QuizResponse:
    return repo.require_quiz(quiz_id)


@router.patch("/{quiz_id}", response_model=QuizResponse, summary="Update quiz")
def update_quiz(
    quiz_id: int,
    request: QuizUpdateRequest,
    repo: QuizRepository = Depends(get_repository),
) -> QuizResponse:
    return QuizAuthoring(repo).update_quiz(quiz_id, **_provided(request))


@router.delete("/{quiz_id}", response_model=QuizResponse, summary="Archive quiz")
def archive_quiz(quiz_id: int, repo: QuizRepository = Depends(get_repository)) -> QuizResponse:
    return QuizAuthoring(repo).archive_quiz(quiz_id)


@router.post("/{quiz_id}/publish", response_model=QuizResponse, summary="Publish quiz")
def publish_quiz(quiz_id: int, repo: QuizRepository = Depends(get_repository)) -> QuizResponse:
    return QuizAuthoring(repo).publish_quiz(quiz_id)


@router.post("/{quiz_id}/schedule", response_model=QuizResponse, summary="Schedule quiz")
def schedule_quiz(
    quiz_id: int,
    request: ScheduleRequest,
    repo: QuizRepository = Depends(get_repository),
) -> QuizResponse:
    return QuizAuthoring(repo).schedule_quiz(quiz_id, request.start, request.end)


@router.get("/{quiz_id}/export", summary="Export quiz snapshot")
def export_quiz(quiz_id: int, repo: QuizRepository = Depends(get_repository)) -> Dict[str, Any]:
    return QuizTransfer(repo).export_quiz(quiz_id)


# ========================================
# Quiz Question Endpoints
# ========================================


@router.get("/{quiz_id}/questions", response_model=List[QuestionResponse], summary="List quiz questions")
def list_questions(
    quiz_id: int,
    include_inactive: bool = False,
    repo: QuizRepository = Depends(get_repository),
) -> List[QuestionResponse]:
    return QuizAuthoring(repo).quiz_questions(quiz_id, include_inactive=include_inactive)


@router.post(
    "/{quiz_id}/questions",
    response_model=QuestionResponse,
    status_code=201,
    summary="Create question",
)
def create_question(
    quiz_id: int,
    request: QuestionCreateRequest,
    repo: QuizRepository = Depends(get_repository),
) -> QuestionResponse:
    data = _provided(request)
    return QuizAuthoring(repo).create_question(
        data.pop("question_text"),
        data.pop("question_type", QuestionType.MULTIPLE_CHOICE),
        data.pop("payload", None),
        quiz_id=quiz_id,
        **data,
    )


@router.put("/{quiz_id}/questions/order", response_model=List[QuestionResponse], summary="Reorder questions")
def reorder_questions(
    quiz_id: int,
    request: ReorderRequest,
    repo: QuizRepository = Depends(get_repository),
) -> List[QuestionResponse]:
    return QuizAuthoring(repo).reorder_questions(quiz_id, request.question_ids)


@router.post("/{quiz_id}/questions/import-csv", response_model=CsvImportResponse, summary="Import questions from CSV")
def import_csv(
    quiz_id: int,
    request: CsvImportRequest,
    repo: QuizRepository = Depends(get_repository),
) -> CsvImportResponse:
    result = import_questions_from_csv(QuizAuthoring(repo), quiz_id, request.data)
    if result.errors:
        logger.warning(f"CSV import into quiz {quiz_id} reported {len(result.errors)} bad rows")
    return CsvImportResponse(**result.to_dict())


@router.get("/{quiz_id}/questions/export-csv", response_class=PlainTextResponse, summary="Export questions as CSV")
def export_csv(quiz_id: int, repo: QuizRepository = Depends(get_repository)) -> PlainTextResponse:
    questions = QuizAuthoring(repo).quiz_questions(quiz_id)
    return PlainTextResponse(export_questions_to_csv(questions), media_type="text/csv")


# ========================================
# Section Endpoints
# ========================================


@router.get("/{quiz_id}/sections", response_model=List[SectionResponse], summary="List sections")
def list_sections(quiz_id: int, repo: QuizRepository = Depends(get_repository)) -> List[SectionResponse]:
    return QuizAuthoring(repo).quiz_sections(quiz_id)


@router.post("/{quiz_id}/sections", response_model=SectionResponse, status_code=201, summary="Create section")
def create_section(
    quiz_id: int,
    request: SectionCreateRequest,
    repo: QuizRepository = Depends(get_repository),
) -> SectionResponse:
    data = _provided(request)
    return QuizAuthoring(repo).create_section(quiz_id, data.pop("title"), **data)
