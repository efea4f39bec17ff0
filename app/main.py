import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from app.certificates.exceptions import CertificateError
from app.certificates.router import router as certificates_router
from app.config import settings
from app.init_db import startup as init_startup
from app.redis import close_redis

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# --- CORS Middleware ---


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Permissive CORS for the browser client.

    Preflight requests are answered here with an empty body, before any
    route or dependency runs.
    """

    def _cors_headers(self, request: Request) -> dict[str, str]:
        origins = settings.cors_origins
        origin = request.headers.get("origin")
        if "*" in origins:
            allow_origin = "*"
        elif origin in origins:
            allow_origin = origin
        else:
            return {}
        headers = {
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Headers": ", ".join(settings.cors_allow_headers),
            "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        }
        if allow_origin != "*":
            headers["Vary"] = "Origin"
        return headers

    async def dispatch(self, request: Request, call_next) -> Response:
        cors = self._cors_headers(request)
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=cors)

        response = await call_next(request)
        for key, value in cors.items():
            response.headers[key] = value
        return response


# --- Security Headers Middleware ---


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.app_env == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_secrets()
    logger.info("CORS origins: %s", settings.cors_origins)
    await init_startup()
    yield
    await close_redis()


# Disable interactive docs in production
_docs_url = "/docs" if settings.app_env != "production" else None
_redoc_url = "/redoc" if settings.app_env != "production" else None

app = FastAPI(
    title="Course Certificates",
    description="Certificate issuance and rendering for completed courses",
    version="0.1.0",
    root_path="",
    lifespan=lifespan,
    docs_url=_docs_url,
    redoc_url=_redoc_url,
)

app.add_middleware(SecurityHeadersMiddleware)

# Added last so it is outermost and sees preflights first
app.add_middleware(CORSHeadersMiddleware)


@app.exception_handler(CertificateError)
async def certificate_error_handler(request: Request, exc: CertificateError):
    if exc.status_code >= 500:
        logger.error("Certificate request failed on %s: %s", request.url.path, exc.message)
    else:
        logger.info("Certificate request rejected on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Unhandled database error on %s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Failed to load certificate data"},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    in_body = any(tuple(err.get("loc", ()))[:1] == ("body",) for err in exc.errors())
    message = "Invalid request body" if in_body else "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "error": message})


app.include_router(certificates_router, prefix="/api/certificates", tags=["certificates"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok"}
