from fastapi import status


class CertificateError(Exception):
    """Base error for the certificate flow; rendered as ``{success: false, error}``."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Certificate request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(CertificateError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid token"


class InvalidRequest(CertificateError):
    default_message = "Course ID is required"


class NotEligible(CertificateError):
    default_message = "Course not completed yet. Finish the remaining lessons to get your certificate."


class RetrievalFailure(CertificateError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Failed to load certificate data"


class ConflictRetryExhausted(CertificateError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Failed to issue certificate"
