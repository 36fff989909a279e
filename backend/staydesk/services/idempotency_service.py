"""Idempotency guard for mutating booking, payment and refund requests.

A client-supplied ``Idempotency-Key`` is claimed per scope before the request
runs. The key row lives in its own session so it survives the request's own
commit or rollback.

- same key, same payload, completed → the stored response is replayed
- same key, different payload → 409
- same key while the first request is still running → 409
- 5xx, retryable conflicts and unexpected failures release the key for a retry
"""

import hashlib
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from staydesk.data.clock import as_utc, utcnow
from staydesk.errors import AppError, ConflictError, ValidationError
from staydesk.models.events import IdempotencyKey

logger = logging.getLogger(__name__)

IN_PROGRESS = "InProgress"
COMPLETED = "Completed"

ComputeFn = Callable[[], Awaitable[tuple[int, dict]]]


def canonical_json(obj: Any) -> str:
    """Stable JSON for hashing: sorted keys, compact separators."""
    return json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False, default=str)


def compute_request_hash(method: str, path: str, body: dict[str, Any]) -> str:
    raw = f"{method.upper()}|{path}|{canonical_json(body)}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class IdempotencyService:
    def __init__(self, ttl_hours: int = 24):
        self.ttl_hours = ttl_hours

    async def store_or_replay(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        scope: str,
        key: str | None,
        method: str,
        path: str,
        request_body: dict[str, Any],
        compute_response_fn: ComputeFn,
        now: datetime | None = None,
    ) -> tuple[int, dict]:
        if not key:
            raise ValidationError("Idempotency-Key header is missing", code="idempotency_key_missing")

        now = now or utcnow()
        req_hash = compute_request_hash(method, path, request_body)

        replay = await self._claim(session_factory, scope, key, req_hash, now)
        if replay is not None:
            logger.info(f"Idempotency hit for {scope} key {key}")
            return replay

        try:
            status_code, body = await compute_response_fn()
        except AppError as e:
            if e.status_code >= 500 or e.retryable:
                await self._release(session_factory, scope, key)
            else:
                await self._complete(session_factory, scope, key, e.status_code, e.to_dict())
            raise
        except Exception:
            await self._release(session_factory, scope, key)
            raise

        if status_code >= 500:
            await self._release(session_factory, scope, key)
        else:
            await self._complete(session_factory, scope, key, status_code, body)
        return status_code, body

    async def _claim(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scope: str,
        key: str,
        req_hash: str,
        now: datetime,
    ) -> tuple[int, dict] | None:
        """Insert an InProgress row, or return the stored response of a completed twin."""
        async with session_factory() as db:
            existing = await self._get(db, scope, key)
            if existing and as_utc(existing.expires_at) <= now:
                await db.delete(existing)
                await db.commit()
                existing = None

            if existing is None:
                db.add(
                    IdempotencyKey(
                        key=key,
                        scope=scope,
                        request_hash=req_hash,
                        status=IN_PROGRESS,
                        expires_at=now + timedelta(hours=self.ttl_hours),
                    )
                )
                try:
                    await db.commit()
                    return None
                except IntegrityError:
                    # another worker claimed it first
                    await db.rollback()
                    existing = await self._get(db, scope, key)
                    if existing is None:
                        raise ConflictError("Idempotency key is being processed", code="idempotency_in_progress")

            if existing.request_hash != req_hash:
                raise ConflictError(
                    "Idempotency-Key is reused with a different payload",
                    code="idempotency_key_reused",
                    details={"key": key, "scope": scope},
                )
            if existing.status != COMPLETED:
                raise ConflictError(
                    "Request with this Idempotency-Key is currently being processed",
                    code="idempotency_in_progress",
                    details={"key": key, "scope": scope},
                )
            return existing.response_status or 200, existing.response_body or {}

    async def _get(self, db: AsyncSession, scope: str, key: str) -> IdempotencyKey | None:
        result = await db.execute(
            select(IdempotencyKey).where(IdempotencyKey.key == key, IdempotencyKey.scope == scope)
        )
        return result.scalar_one_or_none()

    async def _complete(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scope: str,
        key: str,
        status_code: int,
        body: dict,
    ) -> None:
        async with session_factory() as db:
            await db.execute(
                update(IdempotencyKey)
                .where(IdempotencyKey.key == key, IdempotencyKey.scope == scope)
                .values(status=COMPLETED, response_status=status_code, response_body=body)
            )
            await db.commit()

    async def _release(self, session_factory: async_sessionmaker[AsyncSession], scope: str, key: str) -> None:
        async with session_factory() as db:
            await db.execute(
                delete(IdempotencyKey).where(IdempotencyKey.key == key, IdempotencyKey.scope == scope)
            )
            await db.commit()
        logger.warning(f"Released {scope} idempotency key {key}")

    async def purge_expired(self, db: AsyncSession, now: datetime | None = None) -> int:
        now = now or utcnow()
        result = await db.execute(delete(IdempotencyKey).where(IdempotencyKey.expires_at <= now))
        await db.commit()
        if result.rowcount:
            logger.info(f"Purged {result.rowcount} expired idempotency keys")
        return result.rowcount
