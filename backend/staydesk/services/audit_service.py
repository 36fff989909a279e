"""Audit rows for booking, payment and refund state changes."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.models.events import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    async def record(
        self,
        db: AsyncSession,
        action: str,
        entity_type: str,
        entity_id: str,
        actor_id: str | None = None,
        before_state: dict | None = None,
        after_state: dict | None = None,
    ) -> AuditLog:
        entry = AuditLog(
            actor_id=actor_id,
            actor_type="User" if actor_id else "System",
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            before_state=before_state,
            after_state=after_state,
        )
        db.add(entry)
        await db.flush()
        logger.info(f"Audit {action} {entity_type}:{entity_id} by {actor_id or 'system'}")
        return entry

    async def list_for_entity(self, db: AsyncSession, entity_type: str, entity_id: str) -> list[AuditLog]:
        result = await db.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == str(entity_id))
            .order_by(AuditLog.created_at)
        )
        return list(result.scalars().all())


audit_service = AuditService()
