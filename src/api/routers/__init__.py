"""API routers for the quiz assessment engine."""

from src.api.routers import attempt_router, quiz_router

__all__ = [
    "attempt_router",
    "quiz_router",
]
