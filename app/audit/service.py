import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit.models import AuditLog
from app.database import async_session

logger = logging.getLogger(__name__)


async def write_audit_log(
    db: AsyncSession,
    *,
    action: str,
    user_id: uuid.UUID | None = None,
    resource_type: str | None = None,
    resource_id: str | None = None,
    detail: dict | None = None,
) -> AuditLog:
    """Persist an audit log entry."""
    entry = AuditLog(
        action=action,
        user_id=user_id,
        resource_type=resource_type,
        resource_id=resource_id,
        detail=detail,
    )
    db.add(entry)
    await db.commit()
    logger.info(
        "audit: action=%s user=%s resource=%s/%s",
        action,
        user_id,
        resource_type,
        resource_id,
    )
    return entry


async def record_event(**kwargs) -> None:
    """Write an audit entry in its own session, never raising.

    Used after the main transaction has committed, so a failed audit write
    cannot undo or fail the operation it describes.
    """
    try:
        async with async_session() as db:
            await write_audit_log(db, **kwargs)
    except SQLAlchemyError:
        logger.exception("Failed to write audit log for %s", kwargs.get("action"))

