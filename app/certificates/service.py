import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.attributes import set_committed_value

from app.audit.service import record_event
from app.certificates import storage
from app.certificates.exceptions import (
    ConflictRetryExhausted,
    NotEligible,
    RetrievalFailure,
)
from app.certificates.models import Certificate
from app.certificates.renderer import CertificateData, render_certificate_svg
from app.config import settings
from app.courses.completion import CompletionVerifier, CourseCompletion
from app.courses.service import get_course_title
from app.users.service import get_user_full_name

logger = logging.getLogger(__name__)

# Uppercase + digits without the look-alikes 0/O and 1/I/L
_NUMBER_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
_NUMBER_LENGTH = 8


@dataclass(frozen=True)
class IssuedCertificate:
    certificate: Certificate
    user_name: str
    course_name: str
    svg: str


def generate_certificate_number(now: datetime | None = None) -> str:
    """Random certificate number: CERT-YYYY-XXXXXXXX."""
    now = now or datetime.now(timezone.utc)
    token = "".join(secrets.choice(_NUMBER_ALPHABET) for _ in range(_NUMBER_LENGTH))
    return f"{settings.certificate_number_prefix}-{now.year}-{token}"


async def get_certificate_for_course(
    db: AsyncSession, user_id: uuid.UUID, course_id: uuid.UUID
) -> Certificate | None:
    result = await db.execute(
        select(Certificate).where(
            Certificate.user_id == user_id,
            Certificate.course_id == course_id,
        )
    )
    return result.scalar_one_or_none()


async def _find_existing(
    db: AsyncSession, user_id: uuid.UUID, course_id: uuid.UUID
) -> Certificate | None:
    try:
        return await get_certificate_for_course(db, user_id, course_id)
    except SQLAlchemyError as e:
        logger.exception("Failed to look up certificate user=%s course=%s", user_id, course_id)
        raise RetrievalFailure("Failed to fetch certificate") from e


async def _insert_certificate(
    db: AsyncSession, user_id: uuid.UUID, course_id: uuid.UUID
) -> tuple[Certificate, bool]:
    """Insert a new row; returns ``(certificate, created)``.

    An integrity error means either another request issued the certificate
    first (we return its row) or the random number collided (we draw again).
    """
    attempts = max(1, settings.certificate_number_attempts)
    for _ in range(attempts):
        number = generate_certificate_number()
        cert = Certificate(
            user_id=user_id,
            course_id=course_id,
            certificate_number=number,
            issued_at=datetime.now(timezone.utc),
        )
        db.add(cert)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            winner = await _find_existing(db, user_id, course_id)
            if winner:
                logger.info(
                    "Concurrent issuance for user=%s course=%s, returning %s",
                    user_id,
                    course_id,
                    winner.certificate_number,
                )
                return winner, False
            logger.warning(
                "Certificate number %s already taken, drawing a new one", number
            )
            continue
        except SQLAlchemyError as e:
            await db.rollback()
            logger.exception("Failed to insert certificate user=%s course=%s", user_id, course_id)
            raise RetrievalFailure("Failed to issue certificate") from e

        # id, number and issued_at are all set client-side
        return cert, True

    logger.error(
        "Gave up issuing certificate for user=%s course=%s after %d attempts",
        user_id,
        course_id,
        attempts,
    )
    raise ConflictRetryExhausted()


async def get_or_issue_certificate(
    db: AsyncSession,
    verifier: CompletionVerifier,
    user_id: uuid.UUID,
    course_id: uuid.UUID,
) -> Certificate:
    """Return the user's certificate for the course, issuing it on first call.

    Fails with ``NotEligible`` (and writes nothing) unless the course is
    complete. Repeat calls return the original row untouched.
    """
    try:
        complete = await verifier.is_complete(db, user_id, course_id)
    except SQLAlchemyError as e:
        logger.exception("Completion check failed user=%s course=%s", user_id, course_id)
        raise RetrievalFailure("Failed to check course completion") from e
    if not complete:
        raise NotEligible()

    existing = await _find_existing(db, user_id, course_id)
    if existing:
        return existing

    cert, created = await _insert_certificate(db, user_id, course_id)
    if created:
        logger.info(
            "Issued certificate %s to user=%s for course=%s",
            cert.certificate_number,
            user_id,
            course_id,
        )
        await record_event(
            action="certificate.issue",
            user_id=user_id,
            resource_type="certificate",
            resource_id=str(cert.id),
            detail={
                "certificate_number": cert.certificate_number,
                "course_id": str(course_id),
            },
        )
    return cert


async def _attach_document(db: AsyncSession, cert: Certificate, svg: str) -> None:
    """Store a rendered copy once; failures only cost the shareable link."""
    try:
        url = storage.save_document(cert.certificate_number, svg)
    except OSError:
        logger.exception("Could not store rendering for %s", cert.certificate_number)
        return

    # Detached so a rollback below cannot expire the already-loaded row
    db.expunge(cert)
    try:
        await db.execute(
            update(Certificate)
            .where(Certificate.id == cert.id, Certificate.document_url.is_(None))
            .values(document_url=url)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not record document URL for %s", cert.certificate_number)
        return
    # The URL only depends on the number, so a concurrent writer stored the same one
    set_committed_value(cert, "document_url", url)


async def render_for(db: AsyncSession, cert: Certificate) -> IssuedCertificate:
    """Load the names the certificate shows and render it."""
    try:
        user_name = await get_user_full_name(db, cert.user_id)
        course_name = await get_course_title(db, cert.course_id)
    except SQLAlchemyError as e:
        logger.exception("Failed to load rendering data for %s", cert.certificate_number)
        raise RetrievalFailure("Failed to load certificate data") from e
    if user_name is None:
        raise RetrievalFailure("Failed to get user profile")
    if course_name is None:
        raise RetrievalFailure("Failed to get course")

    svg = render_certificate_svg(
        CertificateData(
            user_name=user_name,
            course_name=course_name,
            completion_date=cert.issued_at,
            certificate_number=cert.certificate_number,
        )
    )
    return IssuedCertificate(
        certificate=cert, user_name=user_name, course_name=course_name, svg=svg
    )


async def issue_or_fetch_certificate(
    db: AsyncSession,
    verifier: CompletionVerifier,
    user_id: uuid.UUID,
    course_id: uuid.UUID,
) -> IssuedCertificate:
    cert = await get_or_issue_certificate(db, verifier, user_id, course_id)
    issued = await render_for(db, cert)
    if settings.certificate_store_documents and not cert.document_url:
        await _attach_document(db, cert, issued.svg)
    return issued


# --- Lookups ---


async def get_certificate_by_id(
    db: AsyncSession, certificate_id: uuid.UUID
) -> Certificate | None:
    try:
        result = await db.execute(
            select(Certificate).where(Certificate.id == certificate_id)
        )
    except SQLAlchemyError as e:
        logger.exception("Failed to load certificate %s", certificate_id)
        raise RetrievalFailure("Failed to fetch certificate") from e
    return result.scalar_one_or_none()


async def get_certificate_by_number(
    db: AsyncSession, certificate_number: str
) -> Certificate | None:
    try:
        result = await db.execute(
            select(Certificate)
            .options(joinedload(Certificate.user), joinedload(Certificate.course))
            .where(Certificate.certificate_number == certificate_number)
        )
    except SQLAlchemyError as e:
        logger.exception("Failed to look up certificate number %s", certificate_number)
        raise RetrievalFailure("Failed to fetch certificate") from e
    return result.scalar_one_or_none()


async def get_user_certificates(
    db: AsyncSession, user_id: uuid.UUID
) -> list[Certificate]:
    try:
        result = await db.execute(
            select(Certificate)
            .options(joinedload(Certificate.course))
            .where(Certificate.user_id == user_id)
            .order_by(Certificate.issued_at.desc())
        )
    except SQLAlchemyError as e:
        logger.exception("Failed to list certificates for user=%s", user_id)
        raise RetrievalFailure("Failed to fetch certificates") from e
    return list(result.scalars().unique().all())


async def list_completed_courses(
    db: AsyncSession, verifier: CompletionVerifier, user_id: uuid.UUID
) -> list[tuple[CourseCompletion, Certificate | None]]:
    """Courses the user has finished, each paired with its certificate if issued."""
    try:
        completions = await verifier.completed_courses(db, user_id)
    except SQLAlchemyError as e:
        logger.exception("Completed-course lookup failed user=%s", user_id)
        raise RetrievalFailure("Failed to check course completion") from e
    certs = {c.course_id: c for c in await get_user_certificates(db, user_id)}
    return [(c, certs.get(c.course_id)) for c in completions]
