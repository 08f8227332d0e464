"""
Attempt router for taking quizzes.

Endpoints for:
- Eligibility checks and starting attempts
- Serving questions, submitting, abandoning and expiring attempts
- Manual grading by reviewers
- Attempt history, per-policy summaries and quiz statistics
- Certificates
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from src.api.dependencies import current_user, get_repository
from src.assessment.analytics import AnalyticsAggregator
from src.assessment.attempts import AttemptManager, UserIdentity
from src.assessment.certificates import CertificateIssuer
from src.assessment.enums import AttemptStatus
from src.db.repository import QuizRepository

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class StartRequest(BaseModel):
    policy_id: Optional[int] = None


class AttemptResponse(BaseModel):
    """Response model for an attempt."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    quiz_id: int
    user_id: str
    user_name: Optional[str]
    policy_id: Optional[int]
    attempt_number: int
    status: AttemptStatus
    start_time: datetime
    end_time: Optional[datetime]
    time_spent_minutes: Optional[float]
    question_ids: List[int]
    score: float
    max_score: float
    percentage: int
    passed: bool
    questions_answered: int
    questions_correct: int
    questions_partial: int
    questions_incorrect: int
    questions_skipped: int
    requires_manual_review: bool
    reviewed_by_id: Optional[str]
    reviewed_at: Optional[datetime]
    certificate_generated: bool
    certificate_url: Optional[str]


class AttemptDetailResponse(AttemptResponse):
    """Attempt with its graded answer snapshot."""

    answers: List[Dict[str, Any]]


class StartResponse(BaseModel):
    attempt: AttemptResponse
    questions: List[Dict[str, Any]]


class MatchingAnswer(BaseModel):
    left: str
    right: str


class HotspotPoint(BaseModel):
    x: float
    y: float


class AnswerSubmission(BaseModel):
    """One response; only the field matching the question type is read."""

    question_id: int
    selected_answer: Optional[str] = None
    selected_answers: Optional[List[str]] = None
    fill_in_blanks: Optional[List[str]] = None
    matching_answers: Optional[List[MatchingAnswer]] = None
    ordering_answers: Optional[List[str]] = None
    hotspot: Optional[HotspotPoint] = None
    rating_value: Optional[float] = None
    essay_text: Optional[str] = None
    time_spent: Optional[float] = Field(None, ge=0)


class SubmitRequest(BaseModel):
    answers: List[AnswerSubmission] = Field(default_factory=list)


class ManualGradeRequest(BaseModel):
    question_id: int
    grade: float = Field(..., ge=0)
    feedback: Optional[str] = None


class CertificateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    attempt_id: int
    quiz_id: int
    user_id: str
    user_name: Optional[str]
    quiz_title: Optional[str]
    certificate_number: str
    score: int
    passed_date: Optional[datetime]
    issued_date: datetime
    expiry_date: Optional[datetime]
    certificate_url: Optional[str]


# ========================================
# User-scoped Endpoints
# ========================================


@router.get("/history", response_model=List[AttemptResponse], summary="Caller's attempt history")
def history(
    user: UserIdentity = Depends(current_user),
    repo: QuizRepository = Depends(get_repository),
) -> List[AttemptResponse]:
    return AttemptManager(repo).user_history(user.user_id)


@router.get("/summary", summary="Caller's progress on a policy's quiz")
def summary(
    policy_id: int,
    user: UserIdentity = Depends(current_user),
    repo: QuizRepository = Depends(get_repository),
) -> Dict[str, Any]:
    return AttemptManager(repo).quiz_summary(policy_id, user.user_id)


@router.get("/certificates", response_model=List[CertificateResponse], summary="Caller's certificates")
def my_certificates(
    user: UserIdentity = Depends(current_user),
    repo: QuizRepository = Depends(get_repository),
) -> List[CertificateResponse]:
    return CertificateIssuer(repo).user_certificates(user.user_id)


@router.get("/certificates/{certificate_id}", response_model=CertificateResponse, summary="Get certificate")
def get_certificate(certificate_id: int, repo: QuizRepository = Depends(get_repository)) -> CertificateResponse:
    return CertificateIssuer(repo).get_certificate(certificate_id)


# ========================================
# Attempt Endpoints (by attempt id)
# ========================================


@router.get("/attempts/{attempt_id}", response_model=AttemptDetailResponse, summary="Get attempt")
def get_attempt(attempt_id: int, repo: QuizRepository = Depends(get_repository)) -> AttemptDetailResponse:
    return AttemptManager(repo).get_attempt(attempt_id)


@router.get("/attempts/{attempt_id}/questions", summary="Questions served in an attempt")
def attempt_questions(attempt_id: int, repo: QuizRepository = Depends(get_repository)) -> List[Dict[str, Any]]:
    return [served.to_dict() for served in AttemptManager(repo).served_questions(attempt_id)]


@router.post("/attempts/{attempt_id}/submit", summary="Submit attempt")
def submit_attempt(
    attempt_id: int,
    request: SubmitRequest,
    repo: QuizRepository = Depends(get_repository),
) -> Dict[str, Any]:
    responses = [answer.model_dump(exclude_none=True) for answer in request.answers]
    return AttemptManager(repo).submit(attempt_id, responses).to_dict()


@router.post("/attempts/{attempt_id}/abandon", response_model=AttemptResponse, summary="Abandon attempt")
def abandon_attempt(attempt_id: int, repo: QuizRepository = Depends(get_repository)) -> AttemptResponse:
    return AttemptManager(repo).abandon(attempt_id)


@router.post("/attempts/{attempt_id}/expire", response_model=AttemptResponse, summary="Expire attempt")
def expire_attempt(attempt_id: int, repo: QuizRepository = Depends(get_repository)) -> AttemptResponse:
    return AttemptManager(repo).expire(attempt_id)


@router.post("/attempts/{attempt_id}/grade", summary="Manually grade one answer")
def grade_attempt(
    attempt_id: int,
    request: ManualGradeRequest,
    reviewer: UserIdentity = Depends(current_user),
    repo: QuizRepository = Depends(get_repository),
) -> Dict[str, Any]:
    result = AttemptManager(repo).manual_grade(
        attempt_id,
        request.question_id,
        request.grade,
        request.feedback,
        reviewer.user_id,
    )
    return result.to_dict()


@router.post(
    "/attempts/{attempt_id}/certificate",
    response_model=CertificateResponse,
    status_code=201,
    summary="Issue certificate for a passed attempt",
)
def issue_certificate(attempt_id: int, repo: QuizRepository = Depends(get_repository)) -> CertificateResponse:
    return CertificateIssuer(repo).issue(attempt_id)


# ========================================
# Quiz-scoped Endpoints
# ========================================


@router.get("/{quiz_id}/eligibility", summary="Can the caller start an attempt")
def eligibility(
    quiz_id: int,
    user: UserIdentity = Depends(current_user),
    repo: QuizRepository = Depends(get_repository),
) -> Dict[str, Any]:
    return AttemptManager(repo).check_eligibility(quiz_id, user.user_id).to_dict()


@router.post("/{quiz_id}/attempts", response_model=StartResponse, status_code=201, summary="Start attempt")
def start_attempt(
    quiz_id: int,
    request: Optional[StartRequest] = None,
    user: UserIdentity = Depends(current_user),
    repo: QuizRepository = Depends(get_repository),
) -> StartResponse:
    manager = AttemptManager(repo)
    attempt = manager.start(quiz_id, user, policy_id=request.policy_id if request else None)
    questions = [served.to_dict() for served in manager.served_questions(attempt.id)]
    return StartResponse(attempt=AttemptResponse.model_validate(attempt), questions=questions)


@router.get("/{quiz_id}/attempts", response_model=List[AttemptResponse], summary="Caller's attempts on a quiz")
def my_attempts(
    quiz_id: int,
    user: UserIdentity = Depends(current_user),
    repo: QuizRepository = Depends(get_repository),
) -> List[AttemptResponse]:
    repo.require_quiz(quiz_id)
    return AttemptManager(repo).user_attempts(quiz_id, user.user_id)


@router.get("/{quiz_id}/statistics", summary="Quiz statistics and per-question analytics")
def statistics(quiz_id: int, repo: QuizRepository = Depends(get_repository)) -> Dict[str, Any]:
    return AnalyticsAggregator(repo).quiz_statistics(quiz_id).to_dict()
