"""
Quiz assessment engine.

Pure domain logic (enums, payloads, grading, eligibility, analytics) lives
beside the services that persist through src.db.repository.QuizRepository.
"""
from .enums import AttemptStatus, DifficultyLevel, QuestionType, QuizStatus
from .errors import (
    AssessmentError,
    CertificateIneligible,
    ConcurrentUpdate,
    GradingPrecondition,
    NotEligible,
    NotFound,
    ValidationFailure,
)

__all__ = [
    "AttemptStatus",
    "DifficultyLevel",
    "QuestionType",
    "QuizStatus",
    "AssessmentError",
    "CertificateIneligible",
    "ConcurrentUpdate",
    "GradingPrecondition",
    "NotEligible",
    "NotFound",
    "ValidationFailure",
]
