import re
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.certificates import service
from app.certificates.exceptions import (
    ConflictRetryExhausted,
    NotEligible,
    RetrievalFailure,
)
from app.certificates.models import Certificate
from app.config import settings
from app.courses.completion import CompletionVerifier
from app.database import async_session
from app.users.models import User
from tests.factories import (
    StaticVerifier,
    UnreachableVerifier,
    audit_entries,
    complete_lessons,
    make_course,
    make_user,
)

_NUMBER = re.compile(r"^CERT-\d{4}-[A-HJ-NP-Z2-9]{8}$")


async def _count_certificates() -> int:
    async with async_session() as session:
        return (await session.execute(select(func.count(Certificate.id)))).scalar_one()


async def _seed_certificate(user_id, course_id, number: str) -> None:
    async with async_session() as session:
        session.add(
            Certificate(
                user_id=user_id,
                course_id=course_id,
                certificate_number=number,
                issued_at=datetime.now(timezone.utc),
            )
        )
        await session.commit()


def test_generate_certificate_number_format():
    number = service.generate_certificate_number(datetime(2026, 10, 17, tzinfo=timezone.utc))
    assert number.startswith("CERT-2026-")
    assert _NUMBER.match(number)


async def test_issue_then_fetch_is_idempotent(db):
    user = await make_user()
    course, lessons = await make_course()
    await complete_lessons(user.id, lessons)
    verifier = CompletionVerifier()

    first = await service.get_or_issue_certificate(db, verifier, user.id, course.id)
    first_id, first_number, first_issued = first.id, first.certificate_number, first.issued_at
    second = await service.get_or_issue_certificate(db, verifier, user.id, course.id)

    assert _NUMBER.match(first_number)
    assert second.id == first_id
    assert second.certificate_number == first_number
    assert second.issued_at == first_issued
    assert await _count_certificates() == 1


async def test_not_eligible_writes_nothing(db):
    user = await make_user()
    course, lessons = await make_course()
    await complete_lessons(user.id, lessons[:1])

    with pytest.raises(NotEligible):
        await service.get_or_issue_certificate(db, CompletionVerifier(), user.id, course.id)
    assert await _count_certificates() == 0


async def test_not_eligible_even_when_certificate_lookup_would_succeed(db):
    user = await make_user()
    course, _ = await make_course()
    await _seed_certificate(user.id, course.id, "CERT-2026-EXISTING")

    # The completion gate runs first, whatever the ledger holds
    with pytest.raises(NotEligible):
        await service.get_or_issue_certificate(db, StaticVerifier(False), user.id, course.id)


async def test_distinct_pairs_get_distinct_numbers(db):
    first_user = await make_user()
    second_user = await make_user("Siti Aminah")
    course_a, _ = await make_course("Analisis Data")
    course_b, _ = await make_course("Basis Data")
    verifier = StaticVerifier(True)

    numbers = set()
    for user_id in (first_user.id, second_user.id):
        for course_id in (course_a.id, course_b.id):
            cert = await service.get_or_issue_certificate(db, verifier, user_id, course_id)
            numbers.add(cert.certificate_number)

    assert len(numbers) == 4
    assert await _count_certificates() == 4


async def test_lost_race_returns_the_winners_row(db, monkeypatch):
    user = await make_user()
    course, _ = await make_course()
    user_id, course_id = user.id, course.id

    real_lookup = service.get_certificate_for_course
    lookups = {"count": 0}

    async def lookup_before_winner_commits(session, uid, cid):
        lookups["count"] += 1
        if lookups["count"] == 1:
            # Another request commits between our lookup and our insert
            await _seed_certificate(uid, cid, "CERT-2026-WINNER22")
            return None
        return await real_lookup(session, uid, cid)

    monkeypatch.setattr(service, "get_certificate_for_course", lookup_before_winner_commits)

    cert = await service.get_or_issue_certificate(db, StaticVerifier(True), user_id, course_id)

    assert cert.certificate_number == "CERT-2026-WINNER22"
    assert await _count_certificates() == 1
    logs = await audit_entries("certificate")
    assert logs == []


async def test_number_collision_draws_a_new_number(db, monkeypatch):
    holder = await make_user("Siti Aminah")
    user = await make_user()
    course, _ = await make_course()
    user_id, course_id = user.id, course.id
    await _seed_certificate(holder.id, course_id, "CERT-2026-TAKEN222")

    drawn = iter(["CERT-2026-TAKEN222", "CERT-2026-FRESH333"])
    monkeypatch.setattr(service, "generate_certificate_number", lambda: next(drawn))

    cert = await service.get_or_issue_certificate(db, StaticVerifier(True), user_id, course_id)

    assert cert.certificate_number == "CERT-2026-FRESH333"
    assert cert.user_id == user_id
    assert await _count_certificates() == 2


async def test_exhausted_number_attempts(db, monkeypatch):
    holder = await make_user("Siti Aminah")
    user = await make_user()
    course, _ = await make_course()
    user_id, course_id = user.id, course.id
    await _seed_certificate(holder.id, course_id, "CERT-2026-TAKEN222")

    monkeypatch.setattr(service, "generate_certificate_number", lambda: "CERT-2026-TAKEN222")
    monkeypatch.setattr(settings, "certificate_number_attempts", 2)

    with pytest.raises(ConflictRetryExhausted):
        await service.get_or_issue_certificate(db, StaticVerifier(True), user_id, course_id)
    assert await _count_certificates() == 1


async def test_completion_query_failure_is_a_retrieval_failure(db):
    user = await make_user()
    course, _ = await make_course()

    with pytest.raises(RetrievalFailure) as exc_info:
        await service.get_or_issue_certificate(db, UnreachableVerifier(), user.id, course.id)
    assert exc_info.value.message == "Failed to check course completion"
    assert await _count_certificates() == 0


async def test_first_issue_is_audited_once(db):
    user = await make_user()
    course, _ = await make_course()
    verifier = StaticVerifier(True)

    cert = await service.get_or_issue_certificate(db, verifier, user.id, course.id)
    await service.get_or_issue_certificate(db, verifier, user.id, course.id)

    logs = await audit_entries("certificate")
    assert len(logs) == 1
    assert logs[0].action == "certificate.issue"
    assert logs[0].resource_id == str(cert.id)
    assert logs[0].detail["certificate_number"] == cert.certificate_number


async def test_issue_or_fetch_renders_names(db):
    user = await make_user("Dewi Lestari")
    course, _ = await make_course("Statistika Dasar")

    issued = await service.issue_or_fetch_certificate(
        db, StaticVerifier(True), user.id, course.id
    )

    assert issued.user_name == "Dewi Lestari"
    assert issued.course_name == "Statistika Dasar"
    assert "Dewi Lestari" in issued.svg
    assert "Statistika Dasar" in issued.svg
    assert issued.certificate.certificate_number in issued.svg
    assert issued.certificate.document_url is None


async def test_issue_or_fetch_stores_document_once(db, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "certificate_store_documents", True)
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path))
    user = await make_user()
    course, _ = await make_course()
    verifier = StaticVerifier(True)

    issued = await service.issue_or_fetch_certificate(db, verifier, user.id, course.id)
    number = issued.certificate.certificate_number
    stored = tmp_path / "certificates" / f"{number}.svg"

    assert issued.certificate.document_url == f"/api/certificates/files/{number}.svg"
    assert stored.read_text(encoding="utf-8") == issued.svg

    again = await service.issue_or_fetch_certificate(db, verifier, user.id, course.id)
    assert again.certificate.document_url == issued.certificate.document_url
    assert again.svg == issued.svg


async def test_storage_failure_does_not_fail_issuance(db, monkeypatch):
    monkeypatch.setattr(settings, "certificate_store_documents", True)

    def broken_save(number, svg):
        raise OSError("read-only file system")

    monkeypatch.setattr(service.storage, "save_document", broken_save)
    user = await make_user()
    course, _ = await make_course()

    issued = await service.issue_or_fetch_certificate(
        db, StaticVerifier(True), user.id, course.id
    )
    assert issued.certificate.document_url is None
    assert await _count_certificates() == 1


def test_certificates_block_owner_and_course_deletion():
    for column in ("user_id", "course_id"):
        [fk] = Certificate.__table__.c[column].foreign_keys
        assert fk.ondelete == "RESTRICT"


async def test_deleting_a_certified_user_fails(db):
    user = await make_user()
    course, _ = await make_course()
    user_id = user.id
    await service.get_or_issue_certificate(db, StaticVerifier(True), user_id, course.id)

    async with async_session() as session:
        owner = await session.get(User, user_id)
        await session.delete(owner)
        with pytest.raises(IntegrityError):
            await session.commit()

    assert await _count_certificates() == 1
