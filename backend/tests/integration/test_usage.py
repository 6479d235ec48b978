"""Integration tests for usage recording and usage snapshots."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from plangate.errors import NoSubscriptionError
from plangate.models.plan import PlanTier
from plangate.models.subscription import SubscriptionStatus
from plangate.models.usage_log import UsageAction, UsageLog
from plangate.services.usage_ledger import UsageLedger
from plangate.services.usage_recorder import UsageRecorder
from plangate.services.usage_snapshot import (
    UsageSnapshotService,
    admin_snapshot,
    calculate_usage_percentage,
)


@pytest.mark.parametrize(
    ("current", "limit", "expected"),
    [
        (0, None, None),
        (5, 0, 100),
        (0, 100, 0),
        (1, 200, 1),  # 0.5 rounds up
        (49, 50, 98),
        (75, 50, 100),
    ],
)
def test_calculate_usage_percentage(current, limit, expected) -> None:
    """Test percentage rounding, capping and the unlimited case."""
    assert calculate_usage_percentage(current, limit) == expected


@pytest.mark.asyncio
async def test_record_extracts_resource_type(db_session: AsyncSession, create_plan, create_user) -> None:
    """Test that resourceType moves out of the metadata into its own column."""
    plan = await create_plan(PlanTier.PRO, maxRequestsPerMonth=10)
    user = await create_user(plan)

    entry = await UsageRecorder(db_session).record(
        user.id,
        UsageAction.IMAGE_GENERATION,
        {"resourceType": "image", "promptLength": 42, "isEditing": False},
    )
    await db_session.commit()

    assert entry.action == UsageAction.IMAGE_GENERATION
    assert entry.resource_type == "image"
    assert entry.extra_metadata == {"promptLength": 42, "isEditing": False}


@pytest.mark.asyncio
async def test_record_accepts_action_value(db_session: AsyncSession, create_user) -> None:
    """Test that the action may be passed as its string value."""
    user = await create_user()

    entry = await UsageRecorder(db_session).record(user.id, "pro_mode")

    assert entry.action == UsageAction.PRO_MODE
    assert entry.resource_type is None
    assert entry.extra_metadata == {}


@pytest.mark.asyncio
async def test_list_for_user_is_newest_first_and_paginated(db_session: AsyncSession, create_user) -> None:
    """Test ledger listing order, the since filter and pagination."""
    user = await create_user()
    other = await create_user()
    base = datetime(2026, 4, 10)
    for day in range(5):
        db_session.add(
            UsageLog(user_id=user.id, action=UsageAction.CHAT, created_at=base + timedelta(days=day), extra_metadata={})
        )
    db_session.add(UsageLog(user_id=other.id, action=UsageAction.CHAT, created_at=base, extra_metadata={}))
    await db_session.commit()
    ledger = UsageLedger(db_session)

    entries, total = await ledger.list_for_user(user.id, page=1, page_size=2)
    assert total == 5
    assert [e.created_at for e in entries] == [base + timedelta(days=4), base + timedelta(days=3)]

    recent, recent_total = await ledger.list_for_user(user.id, since=base + timedelta(days=3))
    assert recent_total == 2
    assert len(recent) == 2


@pytest.mark.asyncio
async def test_snapshot_reports_usage_against_limit(db_session: AsyncSession, create_plan, create_user) -> None:
    """Test the usage figures and limit flag of a snapshot."""
    plan = await create_plan(PlanTier.FREE, maxRequestsPerMonth=4)
    user = await create_user(plan)
    recorder = UsageRecorder(db_session)
    for _ in range(3):
        await recorder.record(user.id, UsageAction.CHAT)
    await db_session.commit()

    snapshot = await UsageSnapshotService(db_session).snapshot(user.id)

    assert snapshot.plan_name == "FREE"
    assert snapshot.usage.current == 3
    assert snapshot.usage.limit == 4
    assert snapshot.usage.percentage == 75
    assert snapshot.usage.remaining == 1
    assert snapshot.is_limit_reached is False
    assert snapshot.is_admin is False
    assert snapshot.subscription_status == SubscriptionStatus.ACTIVE
    assert snapshot.reset_date is not None

    await recorder.record(user.id, UsageAction.CHAT)
    snapshot = await UsageSnapshotService(db_session).snapshot(user.id)
    assert snapshot.is_limit_reached is True
    assert snapshot.usage.remaining == 0


@pytest.mark.asyncio
async def test_snapshot_for_unlimited_plan(db_session: AsyncSession, default_plans, create_user) -> None:
    """Test that an unlimited plan reports no percentage or remaining count."""
    user = await create_user(default_plans[PlanTier.ENTERPRISE])

    snapshot = await UsageSnapshotService(db_session).snapshot(user.id)

    assert snapshot.usage.limit is None
    assert snapshot.usage.percentage is None
    assert snapshot.usage.remaining is None
    assert snapshot.is_limit_reached is False


@pytest.mark.asyncio
async def test_snapshot_without_subscription(db_session: AsyncSession, create_user) -> None:
    """Test that a snapshot needs a subscription."""
    user = await create_user()

    with pytest.raises(NoSubscriptionError):
        await UsageSnapshotService(db_session).snapshot(user.id)


def test_admin_snapshot_is_unlimited() -> None:
    """Test the fixed administrator snapshot."""
    snapshot = admin_snapshot()

    assert snapshot.is_admin is True
    assert snapshot.plan_name == "ADMIN"
    assert snapshot.features.is_unlimited
    assert snapshot.usage.current == 0
    assert snapshot.is_limit_reached is False
