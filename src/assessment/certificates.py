"""
Certificate issuance for passed attempts.

Issuing is idempotent: a second request for the same attempt returns the
certificate already on file. The unique constraint on attempt_id backs
this up if two requests race.
"""
from __future__ import annotations

from datetime import timedelta, timezone
from typing import List

from loguru import logger
from sqlalchemy.exc import IntegrityError

from config import get_settings
from src.db.models import QuizAttempt, QuizCertificate
from src.db.utils import utcnow

from .errors import CertificateIneligible, NotFound


def certificate_number(quiz_id: int, attempt_id: int, issued_ms: int, prefix: str = "CERT") -> str:
    """Format: {prefix}-{quiz_id}-{attempt_id}-{epoch_ms}."""
    return f"{prefix}-{quiz_id}-{attempt_id}-{issued_ms}"


class CertificateIssuer:
    """Issues and looks up quiz certificates."""

    def __init__(self, repo):
        self.repo = repo
        self.settings = get_settings()

    def issue(self, attempt_id: int) -> QuizCertificate:
        """
        Issue the certificate for a passed attempt.

        Raises:
            NotFound: Unknown attempt
            CertificateIneligible: Attempt not passed, or the quiz does not
                generate certificates
        """
        attempt = self.repo.require_attempt(attempt_id)
        quiz = self.repo.require_quiz(attempt.quiz_id)

        if not attempt.passed:
            logger.warning(f"Certificate refused for attempt {attempt_id}: not passed")
            raise CertificateIneligible(f"Attempt {attempt_id} has not passed")
        if not quiz.generate_certificate:
            logger.warning(f"Certificate refused for attempt {attempt_id}: quiz {quiz.id} has no certificates")
            raise CertificateIneligible(f"Quiz {quiz.id} does not issue certificates")

        existing = self.repo.certificate_for_attempt(attempt_id)
        if existing is not None:
            return existing

        issued = utcnow()
        number = certificate_number(
            quiz.id,
            attempt.id,
            int(issued.replace(tzinfo=timezone.utc).timestamp() * 1000),
            prefix=self.settings.certificate_prefix,
        )
        expiry = (
            issued + timedelta(days=self.settings.certificate_validity_days)
            if self.settings.certificate_validity_days
            else None
        )
        certificate = QuizCertificate(
            attempt_id=attempt.id,
            quiz_id=quiz.id,
            user_id=attempt.user_id,
            user_name=attempt.user_name,
            quiz_title=quiz.title,
            certificate_number=number,
            score=attempt.percentage,
            passed_date=attempt.end_time or issued,
            issued_date=issued,
            expiry_date=expiry,
            certificate_url=f"{self.settings.certificate_url_base.rstrip('/')}/{number}",
        )

        try:
            with self.repo.session.begin_nested():
                self.repo.add(certificate)
        except IntegrityError:
            # Lost a race with a concurrent issue for the same attempt
            existing = self.repo.certificate_for_attempt(attempt_id)
            if existing is None:
                raise
            return existing

        self._mark_attempt(attempt, certificate)
        logger.info(f"Certificate {number} issued for attempt {attempt.id} (user {attempt.user_id})")
        return certificate

    def _mark_attempt(self, attempt: QuizAttempt, certificate: QuizCertificate) -> None:
        attempt.certificate_generated = True
        attempt.certificate_url = certificate.certificate_url
        self.repo.flush()

    def get_certificate(self, certificate_id: int) -> QuizCertificate:
        certificate = self.repo.get_certificate(certificate_id)
        if certificate is None:
            raise NotFound("Certificate", certificate_id)
        return certificate

    def user_certificates(self, user_id: str) -> List[QuizCertificate]:
        """All certificates for a user, newest first."""
        return self.repo.user_certificates(user_id)
