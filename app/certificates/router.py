import re
import uuid

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.certificates import storage
from app.certificates.exceptions import InvalidRequest
from app.certificates.schemas import (
    CertificateBrief,
    CertificateOut,
    CertificateSummary,
    CertificateVerificationOut,
    CompletedCourseOut,
    GenerateCertificateOut,
    GenerateCertificateRequest,
)
from app.certificates.service import (
    get_certificate_by_id,
    get_certificate_by_number,
    get_user_certificates,
    issue_or_fetch_certificate,
    list_completed_courses,
    render_for,
)
from app.courses.completion import CompletionVerifier, get_completion_verifier
from app.database import get_db
from app.users.models import User

router = APIRouter()


def _parse_course_id(raw: str | None) -> uuid.UUID:
    if raw is None or not raw.strip():
        raise InvalidRequest("Course ID is required")
    try:
        return uuid.UUID(raw.strip())
    except ValueError:
        raise InvalidRequest("Invalid course ID")


def _download_filename(course_title: str, certificate_number: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9._-]+", "-", course_title.strip()).strip("-") or "Course"
    return f"Sertifikat-{slug}-{certificate_number}.svg"


# ── Learner: issue, list, download ───────────────────────────────────


@router.post("/generate", response_model=GenerateCertificateOut)
async def generate_certificate(
    data: GenerateCertificateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    verifier: CompletionVerifier = Depends(get_completion_verifier),
):
    """Issue the caller's certificate for a completed course, or fetch it again."""
    course_id = _parse_course_id(data.course_id)
    issued = await issue_or_fetch_certificate(db, verifier, current_user.id, course_id)
    cert = issued.certificate
    return GenerateCertificateOut(
        certificate=CertificateSummary(
            id=cert.id,
            certificate_number=cert.certificate_number,
            issued_at=cert.issued_at,
            user_name=issued.user_name,
            course_name=issued.course_name,
        ),
        svg=issued.svg,
    )


@router.get("/my", response_model=list[CertificateOut])
async def list_my_certificates(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    certs = await get_user_certificates(db, current_user.id)
    return [
        CertificateOut(
            id=c.id,
            course_id=c.course_id,
            certificate_number=c.certificate_number,
            issued_at=c.issued_at,
            document_url=c.document_url,
            course_title=c.course.title if c.course else None,
        )
        for c in certs
    ]


@router.get("/completed-courses", response_model=list[CompletedCourseOut])
async def completed_courses_overview(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    verifier: CompletionVerifier = Depends(get_completion_verifier),
):
    """Courses the caller has finished, with the certificate if already issued."""
    completed = await list_completed_courses(db, verifier, current_user.id)
    return [
        CompletedCourseOut(
            course_id=completion.course_id,
            course_title=completion.course_title,
            completed_at=completion.last_completed_at,
            certificate=CertificateBrief.model_validate(cert) if cert else None,
        )
        for completion, cert in completed
    ]


@router.get("/{certificate_id}/download")
async def download_certificate(
    certificate_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cert = await get_certificate_by_id(db, certificate_id)
    if not cert:
        raise HTTPException(status_code=404, detail="Certificate not found")
    if cert.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Access denied")

    rendered = await render_for(db, cert)
    filename = _download_filename(rendered.course_name, cert.certificate_number)
    return Response(
        content=rendered.svg,
        media_type="image/svg+xml",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ── Public: verification and stored copies ───────────────────────────


@router.get("/verify/{certificate_number}", response_model=CertificateVerificationOut)
async def verify_certificate(
    certificate_number: str,
    db: AsyncSession = Depends(get_db),
):
    """Public endpoint to confirm a certificate number. No auth required."""
    cert = await get_certificate_by_number(db, certificate_number.strip())
    if not cert:
        raise HTTPException(status_code=404, detail="Certificate not found")
    return CertificateVerificationOut(
        certificate_number=cert.certificate_number,
        issued_at=cert.issued_at,
        user_name=cert.user.full_name if cert.user else "",
        course_name=cert.course.title if cert.course else "",
    )


@router.get("/files/{filename}")
async def serve_certificate_document(filename: str):
    path = storage.resolve_document_path(filename)
    if not path:
        raise HTTPException(status_code=404)
    return FileResponse(path, media_type="image/svg+xml")
