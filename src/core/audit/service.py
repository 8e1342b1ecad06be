from enum import StrEnum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.models import AuditLog


class AuditAction(StrEnum):
    """Standard audit actions."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    # Domain-specific actions
    RECORD_PAYMENT = "RECORD_PAYMENT"
    ASSIGN_RECEIPT_NUMBER = "ASSIGN_RECEIPT_NUMBER"
    UPDATE_RECEIPT_SETTINGS = "UPDATE_RECEIPT_SETTINGS"
    RECONCILE_FEES = "RECONCILE_FEES"
    BACKFILL_RECEIPT_NUMBER = "BACKFILL_RECEIPT_NUMBER"


class AuditService:
    """Service for creating audit logs."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: str | AuditAction,
        entity_type: str,
        entity_id: int,
        school_id: int | None = None,
        actor: str | None = None,
        entity_identifier: str | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        comment: str | None = None,
    ) -> AuditLog:
        """Create an audit log entry."""
        audit_log = AuditLog(
            school_id=school_id,
            actor=actor,
            action=str(action),
            entity_type=entity_type,
            entity_id=entity_id,
            entity_identifier=entity_identifier,
            old_values=old_values,
            new_values=new_values,
            comment=comment,
        )

        self.db.add(audit_log)
        await self.db.flush()

        return audit_log


async def list_audit_entries(
    session: AsyncSession,
    *,
    school_id: int | None = None,
    entity_type: str | None = None,
    action: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[AuditLog], int]:
    """
    List audit log entries with optional filters, newest first.
    Returns (entries, total_count).
    """
    q = select(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    count_q = select(func.count()).select_from(AuditLog)
    if school_id is not None:
        q = q.where(AuditLog.school_id == school_id)
        count_q = count_q.where(AuditLog.school_id == school_id)
    if entity_type is not None:
        q = q.where(AuditLog.entity_type == entity_type)
        count_q = count_q.where(AuditLog.entity_type == entity_type)
    if action is not None:
        q = q.where(AuditLog.action == action)
        count_q = count_q.where(AuditLog.action == action)

    total = (await session.execute(count_q)).scalar_one()

    q = q.offset((page - 1) * limit).limit(limit)
    result = await session.execute(q)
    return list(result.scalars().all()), total
