# SQLAlchemy models
from .attempt import QuizAttempt, QuizCertificate
from .base import Base
from .quiz import QuestionBank, Quiz, QuizQuestion, QuizSection

__all__ = [
    # Base
    "Base",
    # Quiz definitions
    "Quiz",
    "QuizSection",
    "QuestionBank",
    "QuizQuestion",
    # Attempts
    "QuizAttempt",
    "QuizCertificate",
]
