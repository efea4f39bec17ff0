import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Responses use camelCase keys, matching what the web client reads
_camel = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class GenerateCertificateRequest(BaseModel):
    course_id: str | None = Field(default=None, alias="courseId")


class CertificateSummary(BaseModel):
    id: uuid.UUID
    certificate_number: str
    issued_at: datetime
    user_name: str
    course_name: str

    model_config = _camel


class GenerateCertificateOut(BaseModel):
    """Body of a successful issue-or-fetch call."""

    success: bool = True
    certificate: CertificateSummary
    svg: str

    model_config = _camel


class CertificateOut(BaseModel):
    id: uuid.UUID
    course_id: uuid.UUID
    certificate_number: str
    issued_at: datetime
    document_url: str | None = None
    course_title: str | None = None

    model_config = _camel


class CertificateBrief(BaseModel):
    id: uuid.UUID
    certificate_number: str
    issued_at: datetime

    model_config = _camel


class CompletedCourseOut(BaseModel):
    course_id: uuid.UUID
    course_title: str
    completed_at: datetime | None
    certificate: CertificateBrief | None = None

    model_config = _camel


class CertificateVerificationOut(BaseModel):
    valid: bool = True
    certificate_number: str
    issued_at: datetime
    user_name: str
    course_name: str

    model_config = _camel
