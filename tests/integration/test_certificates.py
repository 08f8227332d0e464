"""
Integration tests for certificate issuance.
"""

import re

import pytest

from src.assessment.certificates import CertificateIssuer, certificate_number
from src.assessment.errors import CertificateIneligible, NotFound

pytestmark = pytest.mark.integration


@pytest.fixture
def issuer(repo):
    return CertificateIssuer(repo)


def finish(manager, quiz, learner, answer):
    attempt = manager.start(quiz.id, learner)
    manager.submit(attempt.id, {attempt.question_ids[0]: {"selected_answer": answer}})
    return attempt


def test_certificate_number_format():
    assert certificate_number(3, 41, 1767225600000) == "CERT-3-41-1767225600000"


def test_issue_for_passed_attempt(issuer, make_quiz, manager, learner, mc_question):
    quiz = make_quiz([mc_question], generate_certificate=False)
    attempt = finish(manager, quiz, learner, "B")
    quiz.generate_certificate = True

    certificate = issuer.issue(attempt.id)

    assert re.fullmatch(rf"CERT-{quiz.id}-{attempt.id}-\d+", certificate.certificate_number)
    assert certificate.certificate_url == f"/certificates/{certificate.certificate_number}"
    assert certificate.score == 100
    assert certificate.user_id == learner.user_id
    assert certificate.quiz_title == quiz.title
    assert certificate.expiry_date is None
    assert attempt.certificate_generated
    assert attempt.certificate_url == certificate.certificate_url


def test_issue_is_idempotent(issuer, make_quiz, manager, learner, mc_question):
    quiz = make_quiz([mc_question], generate_certificate=True)
    attempt = finish(manager, quiz, learner, "B")

    first = issuer.issue(attempt.id)
    second = issuer.issue(attempt.id)

    assert first.id == second.id
    assert len(issuer.user_certificates(learner.user_id)) == 1


def test_failed_attempt_is_ineligible(issuer, make_quiz, manager, learner, mc_question):
    quiz = make_quiz([mc_question], generate_certificate=True)
    attempt = finish(manager, quiz, learner, "A")

    with pytest.raises(CertificateIneligible):
        issuer.issue(attempt.id)


def test_quiz_without_certificates_is_ineligible(issuer, make_quiz, manager, learner, mc_question):
    quiz = make_quiz([mc_question])
    attempt = finish(manager, quiz, learner, "B")

    with pytest.raises(CertificateIneligible):
        issuer.issue(attempt.id)


def test_lookup(issuer, make_quiz, manager, learner, mc_question):
    quiz = make_quiz([mc_question], generate_certificate=True)
    attempt = finish(manager, quiz, learner, "B")
    certificate = issuer.issue(attempt.id)

    assert issuer.get_certificate(certificate.id).attempt_id == attempt.id
    with pytest.raises(NotFound):
        issuer.get_certificate(9999)
