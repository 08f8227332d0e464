"""
Shared FastAPI dependencies: repository per request and caller identity.
"""
from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from src.assessment.attempts import UserIdentity
from src.db.database import get_session
from src.db.repository import QuizRepository


def get_repository(session: Session = Depends(get_session)) -> Generator[QuizRepository, None, None]:
    """Repository bound to the request's transactional session."""
    yield QuizRepository(session)


def current_user(
    x_user_id: str | None = Header(None),
    x_user_name: str | None = Header(None),
    x_user_email: str | None = Header(None),
) -> UserIdentity:
    """Identity from X-User-Id / X-User-Name / X-User-Email headers."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return UserIdentity(user_id=x_user_id.strip(), name=x_user_name, email=x_user_email)
