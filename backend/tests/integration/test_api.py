"""Integration tests for the HTTP API."""
from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from plangate.config import settings
from plangate.database import build_engine
from plangate.models.plan import PlanTier
from plangate.models.subscription import SubscriptionStatus
from plangate.models.usage_log import UsageAction
from plangate.models.user import UserRole
from plangate.services.usage_ledger import UsageLedger
from plangate.services.usage_recorder import UsageRecorder
from plangate.services.waitlist_service import WaitlistService

from utils.auth import auth_headers, make_token


@pytest.fixture
def seats_full(monkeypatch) -> None:
    """Every paid seat is taken."""
    monkeypatch.setattr(settings, "max_paid_users", 0)


# Health and authentication


@pytest.mark.asyncio
async def test_health_endpoints(async_client: AsyncClient) -> None:
    """Test liveness and readiness probes."""
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    response = await async_client.get("/health/ready")
    assert response.status_code == 200
    assert response.json()["checks"] == {"database": "connected"}


def test_engine_pool_settings_skip_sqlite() -> None:
    """Test that server databases get the configured pool and SQLite keeps its own."""
    sqlite_engine = build_engine("sqlite+aiosqlite://")
    postgres_engine = build_engine("postgresql+asyncpg://user:secret@db:5432/plangate")

    assert sqlite_engine.dialect.name == "sqlite"
    assert postgres_engine.sync_engine.pool.size() == settings.db_pool_size


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(async_client: AsyncClient) -> None:
    """Test that gated endpoints need a bearer token."""
    response = await async_client.get("/v1/usage")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_expired_token_is_unauthorized(async_client: AsyncClient, create_user) -> None:
    """Test that an expired token is rejected."""
    user = await create_user()
    token = make_token(user, expires_in=timedelta(minutes=-5))

    response = await async_client.get("/v1/usage", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Token has expired"


# Usage


@pytest.mark.asyncio
async def test_get_usage_snapshot(async_client: AsyncClient, default_plans, create_user) -> None:
    """Test the usage overview of a FREE user."""
    user = await create_user(default_plans[PlanTier.FREE])

    response = await async_client.get("/v1/usage", headers=auth_headers(user))

    assert response.status_code == 200
    data = response.json()
    assert data["plan_name"] == "FREE"
    assert data["usage"] == {"current": 0, "limit": 100, "percentage": 0, "remaining": 100}
    assert data["is_limit_reached"] is False
    assert data["is_admin"] is False


@pytest.mark.asyncio
async def test_get_usage_for_admin(async_client: AsyncClient, create_user) -> None:
    """Test that administrators get an unlimited snapshot without a subscription."""
    admin = await create_user(role=UserRole.ADMIN)

    response = await async_client.get("/v1/usage", headers=auth_headers(admin))

    assert response.status_code == 200
    data = response.json()
    assert data["is_admin"] is True
    assert data["plan_name"] == "ADMIN"
    assert data["usage"]["limit"] is None


@pytest.mark.asyncio
async def test_check_allows_action(async_client: AsyncClient, default_plans, create_user) -> None:
    """Test an allowed quota check."""
    user = await create_user(default_plans[PlanTier.PRO])

    response = await async_client.post(
        "/v1/usage/check", json={"action": "image_generation"}, headers=auth_headers(user)
    )

    assert response.status_code == 200
    data = response.json()
    assert data["allowed"] is True
    assert data["usage_count"] == 0
    assert data["plan"]["name"] == "PRO"


@pytest.mark.asyncio
async def test_check_feature_not_allowed(async_client: AsyncClient, default_plans, create_user) -> None:
    """Test that a FREE user is denied image generation with a 403."""
    user = await create_user(default_plans[PlanTier.FREE])

    response = await async_client.post(
        "/v1/usage/check", json={"action": "image_generation"}, headers=auth_headers(user)
    )

    assert response.status_code == 403
    data = response.json()
    assert data["error"] == "feature_not_allowed"
    assert data["message"] == "Image generation not available in current plan"
    assert data["remediation"]


@pytest.mark.asyncio
async def test_check_monthly_limit_returns_429(
    async_client: AsyncClient, db_session: AsyncSession, create_plan, create_user
) -> None:
    """Test that the monthly limit returns 429 with Retry-After and usage figures."""
    plan = await create_plan(PlanTier.FREE, maxRequestsPerMonth=1)
    user = await create_user(plan)
    await UsageRecorder(db_session).record(user.id, UsageAction.CHAT)
    await db_session.commit()

    response = await async_client.post(
        "/v1/usage/check",
        json={"action": "chat"},
        headers={**auth_headers(user), "X-Request-ID": "req-limit-test"},
    )

    assert response.status_code == 429
    assert response.headers["Retry-After"] == str(settings.quota_retry_after_seconds)
    assert response.headers["X-Request-ID"] == "req-limit-test"
    data = response.json()
    assert data["error"] == "monthly_limit_exceeded"
    assert data["message"] == "Monthly request limit exceeded"
    assert data["request_id"] == "req-limit-test"
    assert data["usage"] == {"current": 1, "limit": 1, "percentage": 100, "remaining": 0}


@pytest.mark.asyncio
async def test_check_inactive_subscription(async_client: AsyncClient, default_plans, create_user) -> None:
    """Test that a canceled subscription is denied with its status in the message."""
    user = await create_user(default_plans[PlanTier.PRO], status=SubscriptionStatus.CANCELED)

    response = await async_client.post("/v1/usage/check", json={"action": "chat"}, headers=auth_headers(user))

    assert response.status_code == 403
    assert response.json()["error"] == "subscription_not_active"
    assert response.json()["message"] == "Subscription is canceled"


@pytest.mark.asyncio
async def test_check_without_subscription(async_client: AsyncClient, create_user) -> None:
    """Test that a user without a subscription gets a 403."""
    user = await create_user()

    response = await async_client.post("/v1/usage/check", json={"action": "chat"}, headers=auth_headers(user))

    assert response.status_code == 403
    assert response.json()["error"] == "no_subscription"


@pytest.mark.asyncio
async def test_check_admin_bypass(async_client: AsyncClient, default_plans, create_user) -> None:
    """Test that administrators pass every check without a subscription."""
    admin = await create_user(role=UserRole.ADMIN)

    response = await async_client.post(
        "/v1/usage/check", json={"action": "video_generation"}, headers=auth_headers(admin)
    )

    assert response.status_code == 200
    data = response.json()
    assert data["allowed"] is True
    assert data["limit"] is None
    assert data["plan"]["name"] == "ENTERPRISE"


@pytest.mark.asyncio
async def test_check_rejects_unknown_action(async_client: AsyncClient, create_user) -> None:
    """Test that an unknown action is a validation error."""
    user = await create_user()

    response = await async_client.post("/v1/usage/check", json={"action": "teleport"}, headers=auth_headers(user))

    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "validation_error"
    assert any("action" in detail["field"] for detail in data["details"])


@pytest.mark.asyncio
async def test_record_usage_and_list_logs(async_client: AsyncClient, default_plans, create_user) -> None:
    """Test recording a generation and reading it back."""
    user = await create_user(default_plans[PlanTier.PRO])
    headers = auth_headers(user)

    response = await async_client.post(
        "/v1/usage/record",
        json={"action": "image_generation", "metadata": {"resourceType": "image", "promptLength": 12}},
        headers=headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["resource_type"] == "image"
    assert data["extra_metadata"] == {"promptLength": 12}
    assert data["user_id"] == str(user.id)

    response = await async_client.get("/v1/usage/logs", headers=headers)

    assert response.status_code == 200
    logs = response.json()
    assert logs["total"] == 1
    assert logs["items"][0]["action"] == "image_generation"

    response = await async_client.get("/v1/usage", headers=headers)
    assert response.json()["usage"]["current"] == 1


@pytest.fixture
def strict_quota(monkeypatch) -> None:
    """Quota check and usage append serialized per user."""
    monkeypatch.setattr(settings, "strict_quota_enforcement", True)


@pytest.mark.asyncio
async def test_strict_mode_never_records_past_limit(
    async_client: AsyncClient, db_session: AsyncSession, create_plan, create_user, strict_quota
) -> None:
    """Test that two checks passing together cannot both record on the last unit."""
    plan = await create_plan(PlanTier.FREE, maxRequestsPerMonth=2)
    user = await create_user(plan)
    headers = auth_headers(user)
    await UsageRecorder(db_session).record(user.id, UsageAction.CHAT)
    await db_session.commit()

    for _ in range(2):
        response = await async_client.post("/v1/usage/check", json={"action": "chat"}, headers=headers)
        assert response.status_code == 200

    first = await async_client.post("/v1/usage/record", json={"action": "chat"}, headers=headers)
    second = await async_client.post("/v1/usage/record", json={"action": "chat"}, headers=headers)

    assert first.status_code == 201
    assert second.status_code == 429
    assert second.headers["Retry-After"] == str(settings.quota_retry_after_seconds)
    data = second.json()
    assert data["error"] == "monthly_limit_exceeded"
    assert data["usage"] == {"current": 2, "limit": 2, "percentage": 100, "remaining": 0}
    assert await UsageLedger(db_session).monthly_usage_count(user.id) == 2


@pytest.mark.asyncio
async def test_strict_record_checks_feature_of_recorded_action(
    async_client: AsyncClient, default_plans, create_user, strict_quota
) -> None:
    """Test that strict recording applies the same feature flags as the check."""
    user = await create_user(default_plans[PlanTier.FREE])

    response = await async_client.post(
        "/v1/usage/record", json={"action": "video_generation"}, headers=auth_headers(user)
    )

    assert response.status_code == 403
    assert response.json()["error"] == "feature_not_allowed"


@pytest.mark.asyncio
async def test_strict_record_for_admin(
    async_client: AsyncClient, db_session: AsyncSession, create_user, strict_quota
) -> None:
    """Test that administrators record without a subscription or limit."""
    admin = await create_user(role=UserRole.ADMIN)

    response = await async_client.post("/v1/usage/record", json={"action": "other"}, headers=auth_headers(admin))

    assert response.status_code == 201
    assert await UsageLedger(db_session).monthly_usage_count(admin.id) == 1


@pytest.mark.asyncio
async def test_default_mode_records_without_gate(
    async_client: AsyncClient, db_session: AsyncSession, create_plan, create_user
) -> None:
    """Test that recording is unconditional when strict enforcement is off."""
    plan = await create_plan(PlanTier.FREE, maxRequestsPerMonth=1)
    user = await create_user(plan)
    await UsageRecorder(db_session).record(user.id, UsageAction.CHAT)
    await db_session.commit()

    response = await async_client.post("/v1/usage/record", json={"action": "chat"}, headers=auth_headers(user))

    assert response.status_code == 201
    assert await UsageLedger(db_session).monthly_usage_count(user.id) == 2


# Waitlist


@pytest.mark.asyncio
async def test_join_waitlist_not_required_with_free_seats(async_client: AsyncClient) -> None:
    """Test that registration is refused while seats are available."""
    response = await async_client.post("/v1/waitlist", json={"email": "early@example.com"})

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "waitlist_not_required"
    assert data["available_slots"] == settings.max_paid_users


@pytest.mark.asyncio
async def test_join_waitlist_when_full(async_client: AsyncClient, seats_full) -> None:
    """Test registration, the duplicate conflict and the position lookup."""
    response = await async_client.post("/v1/waitlist", json={"email": "first@example.com", "name": "First"})
    assert response.status_code == 201
    assert response.json() == {"success": True, "position": 1, "error": None}

    response = await async_client.post("/v1/waitlist", json={"email": "second@example.com"})
    assert response.json()["position"] == 2

    response = await async_client.post("/v1/waitlist", json={"email": "FIRST@example.com"})
    assert response.status_code == 409
    data = response.json()
    assert data["error"] == "already_on_waitlist"
    assert data["position"] == 1

    response = await async_client.get("/v1/waitlist", params={"email": "second@example.com"})
    assert response.status_code == 200
    data = response.json()
    assert data["position"] == 2
    assert data["stats"]["waitlist_count"] == 2
    assert data["stats"]["is_capacity_reached"] is True


@pytest.mark.asyncio
async def test_join_waitlist_rejects_invalid_email(async_client: AsyncClient, seats_full) -> None:
    """Test that a malformed email is a validation error."""
    response = await async_client.post("/v1/waitlist", json={"email": "not-an-email"})

    assert response.status_code == 422
    assert response.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_cancel_own_registration(
    async_client: AsyncClient, db_session: AsyncSession, create_user
) -> None:
    """Test that users can cancel their own registration but not someone else's."""
    owner = await create_user(email="owner@example.com")
    stranger = await create_user(email="stranger@example.com")
    service = WaitlistService(db_session, max_paid_users=0)
    await service.add_to_waitlist("owner@example.com")
    await db_session.commit()

    response = await async_client.delete(
        "/v1/waitlist", params={"email": "owner@example.com"}, headers=auth_headers(stranger)
    )
    assert response.status_code == 403

    response = await async_client.delete(
        "/v1/waitlist", params={"email": "Owner@example.com"}, headers=auth_headers(owner)
    )
    assert response.status_code == 200
    assert response.json() == {"success": True}

    response = await async_client.delete(
        "/v1/waitlist", params={"email": "owner@example.com"}, headers=auth_headers(owner)
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_can_cancel_any_registration(
    async_client: AsyncClient, db_session: AsyncSession, create_user
) -> None:
    """Test that administrators may cancel registrations for other emails."""
    admin = await create_user(role=UserRole.ADMIN)
    await WaitlistService(db_session, max_paid_users=0).add_to_waitlist("someone@example.com")
    await db_session.commit()

    response = await async_client.delete(
        "/v1/waitlist", params={"email": "someone@example.com"}, headers=auth_headers(admin)
    )

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_cancel_requires_authentication(async_client: AsyncClient) -> None:
    """Test that cancelling needs a bearer token."""
    response = await async_client.delete("/v1/waitlist", params={"email": "someone@example.com"})

    assert response.status_code == 401


# Checkout


@pytest.mark.asyncio
async def test_checkout_blocked_at_capacity(
    async_client: AsyncClient, default_plans, create_user, seats_full
) -> None:
    """Test that a FREE user cannot start checkout when every seat is taken."""
    user = await create_user(default_plans[PlanTier.FREE])

    response = await async_client.get("/v1/checkout/eligibility", headers=auth_headers(user))

    assert response.status_code == 403
    data = response.json()
    assert data["error"] == "capacity_reached"
    assert data["stats"]["is_capacity_reached"] is True
    assert data["stats"]["available_slots"] == 0


@pytest.mark.asyncio
async def test_checkout_allowed(async_client: AsyncClient, default_plans, create_user, seats_full) -> None:
    """Test that paid users and administrators are always eligible, others while seats remain."""
    paid_user = await create_user(default_plans[PlanTier.PRO])
    admin = await create_user(role=UserRole.ADMIN)

    response = await async_client.get("/v1/checkout/eligibility", headers=auth_headers(paid_user))
    assert response.status_code == 200
    assert response.json()["eligible"] is True

    response = await async_client.get("/v1/checkout/eligibility", headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["eligible"] is True


@pytest.mark.asyncio
async def test_checkout_allowed_with_free_seats(async_client: AsyncClient, default_plans, create_user) -> None:
    """Test that a FREE user may check out while seats remain."""
    user = await create_user(default_plans[PlanTier.FREE])

    response = await async_client.get("/v1/checkout/eligibility", headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json() == {"eligible": True, "stats": None}


# Administration


@pytest.mark.asyncio
async def test_admin_waitlist_requires_admin(async_client: AsyncClient, create_user) -> None:
    """Test that regular users cannot read the admin listing."""
    user = await create_user()

    response = await async_client.get("/v1/admin/waitlist", headers=auth_headers(user))

    assert response.status_code == 403
    assert response.json()["detail"] == "Forbidden"


@pytest.mark.asyncio
async def test_admin_lists_and_notifies(
    async_client: AsyncClient, db_session: AsyncSession, create_user, seats_full
) -> None:
    """Test the admin listing and the notify action."""
    admin = await create_user(role=UserRole.ADMIN)
    service = WaitlistService(db_session, max_paid_users=0)
    registered_at = datetime.utcnow() - timedelta(hours=1)
    for i, email in enumerate(("a@example.com", "b@example.com", "c@example.com")):
        await service.add_to_waitlist(email, now=registered_at + timedelta(seconds=i))
    await db_session.commit()
    headers = auth_headers(admin)

    response = await async_client.get("/v1/admin/waitlist", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert [e["position"] for e in data["entries"]] == [1, 2, 3]

    response = await async_client.post("/v1/admin/waitlist", json={"action": "notify", "count": 2}, headers=headers)
    assert response.status_code == 200
    assert response.json()["notified_count"] == 2

    response = await async_client.get("/v1/admin/waitlist", params={"status": "notified"}, headers=headers)
    assert {e["email"] for e in response.json()["entries"]} == {"a@example.com", "b@example.com"}

    response = await async_client.get("/v1/waitlist", params={"email": "c@example.com"})
    assert response.json()["position"] == 1

    response = await async_client.post("/v1/admin/waitlist", json={"action": "expire"}, headers=headers)
    assert response.json()["expired_count"] == 0


# Cron


@pytest.mark.asyncio
async def test_cron_requires_secret(async_client: AsyncClient, monkeypatch) -> None:
    """Test the shared-secret check on the scheduler endpoint."""
    monkeypatch.setattr(settings, "cron_secret", "")
    response = await async_client.get("/v1/cron/expire-waitlist", headers={"x-cron-secret": "anything"})
    assert response.status_code == 401

    monkeypatch.setattr(settings, "cron_secret", "scheduler-secret")
    response = await async_client.get("/v1/cron/expire-waitlist", headers={"x-cron-secret": "wrong"})
    assert response.status_code == 401

    response = await async_client.get("/v1/cron/expire-waitlist", headers={"x-cron-secret": "scheduler-secret"})
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["expired_count"] == 0
