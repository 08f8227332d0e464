"""
Exceptions raised by the assessment engine.

Every operation either completes or raises one of these; nothing is
retried internally. The API layer translates them to HTTP statuses.
"""

from __future__ import annotations

from datetime import datetime


class AssessmentError(Exception):
    """Base class for all assessment engine failures."""


class NotFound(AssessmentError):
    """A quiz, question, attempt or certificate id did not resolve."""

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class NotEligible(AssessmentError):
    """The user may not start an attempt right now."""

    def __init__(
        self,
        reason: str,
        message: str,
        attempts_remaining: int | None = None,
        next_available_date: datetime | None = None,
    ):
        self.reason = reason
        self.message = message
        self.attempts_remaining = attempts_remaining
        self.next_available_date = next_available_date
        super().__init__(message)


class ValidationFailure(AssessmentError):
    """Input failed validation (missing fields, bad payload, empty quiz...)."""

    def __init__(self, errors: list[str] | str):
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__("; ".join(self.errors))


class GradingPrecondition(AssessmentError):
    """The attempt is in the wrong state, or the question is not part of it."""


class CertificateIneligible(AssessmentError):
    """The attempt did not pass, or the quiz does not issue certificates."""


class ConcurrentUpdate(AssessmentError):
    """Another writer changed the attempt between our read and our write."""
