from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from staydesk.errors import BusinessRuleViolation, ConflictError
from staydesk.models.events import IdempotencyKey
from staydesk.services.idempotency_service import IdempotencyService, compute_request_hash

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_request_hash_ignores_key_order():
    a = compute_request_hash("post", "/api/payments", {"amount": "10.00", "booking_id": "b1"})
    b = compute_request_hash("POST", "/api/payments", {"booking_id": "b1", "amount": "10.00"})
    assert a == b
    assert a != compute_request_hash("POST", "/api/refunds", {"booking_id": "b1", "amount": "10.00"})


@pytest.mark.anyio
async def test_replay_runs_compute_once(app):
    service = IdempotencyService(ttl_hours=24)
    calls = []

    async def compute():
        calls.append(1)
        return 201, {"n": len(calls)}

    kwargs = dict(scope="Payment", key="k", method="POST", path="/api/payments", request_body={"a": 1})
    first = await service.store_or_replay(app.state.session_factory, compute_response_fn=compute, now=NOW, **kwargs)
    second = await service.store_or_replay(app.state.session_factory, compute_response_fn=compute, now=NOW, **kwargs)

    assert first == second == (201, {"n": 1})
    assert len(calls) == 1


@pytest.mark.anyio
async def test_in_progress_key_is_a_conflict(app):
    service = IdempotencyService()
    async with app.state.session_factory() as db:
        db.add(
            IdempotencyKey(
                key="busy",
                scope="Booking",
                request_hash=compute_request_hash("POST", "/api/bookings", {}),
                status="InProgress",
                expires_at=NOW + timedelta(hours=1),
            )
        )
        await db.commit()

    async def compute():
        raise AssertionError("must not run")

    with pytest.raises(ConflictError) as exc:
        await service.store_or_replay(
            app.state.session_factory,
            scope="Booking",
            key="busy",
            method="POST",
            path="/api/bookings",
            request_body={},
            compute_response_fn=compute,
            now=NOW,
        )
    assert exc.value.code == "idempotency_in_progress"


@pytest.mark.anyio
async def test_expired_key_is_reclaimed(app):
    service = IdempotencyService(ttl_hours=1)

    async def compute():
        return 201, {"fresh": True}

    kwargs = dict(scope="Refund", key="old", method="POST", path="/api/refunds", compute_response_fn=compute)
    await service.store_or_replay(app.state.session_factory, request_body={"v": 1}, now=NOW, **kwargs)

    # same key with a new payload after expiry is a new request, not a reuse
    later = NOW + timedelta(hours=2)
    result = await service.store_or_replay(app.state.session_factory, request_body={"v": 2}, now=later, **kwargs)
    assert result == (201, {"fresh": True})


@pytest.mark.anyio
async def test_business_rejection_is_stored_and_purge_clears_expired(app):
    service = IdempotencyService(ttl_hours=1)

    async def compute():
        raise BusinessRuleViolation("nope")

    kwargs = dict(
        scope="Refund", key="rej", method="POST", path="/api/refunds", request_body={}, compute_response_fn=compute
    )
    with pytest.raises(BusinessRuleViolation):
        await service.store_or_replay(app.state.session_factory, now=NOW, **kwargs)
    status, body = await service.store_or_replay(app.state.session_factory, now=NOW, **kwargs)
    assert status == 400
    assert body["error"]["code"] == "business_rule_violation"

    async with app.state.session_factory() as db:
        assert await service.purge_expired(db, now=NOW + timedelta(hours=2)) == 1
        assert (await db.execute(select(func.count(IdempotencyKey.id)))).scalar_one() == 0
