"""Usage gating API endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from plangate.api.deps import current_user_id, get_current_user, get_db
from plangate.api.responses import gating_error_response
from plangate.auth.rbac import is_admin
from plangate.config import settings
from plangate.errors import MonthlyLimitExceededError
from plangate.schemas.quota import QuotaCheckRequest, QuotaDecision
from plangate.schemas.usage import UsageLog, UsageLogCreate, UsageLogList, UsageSnapshot
from plangate.services.admin_bypass import AdminBypassQuotaGate
from plangate.services.quota_gate import gated_action_for
from plangate.services.usage_ledger import UsageLedger, month_start
from plangate.services.usage_recorder import UsageRecorder
from plangate.services.usage_snapshot import UsageSnapshotService, admin_snapshot

router = APIRouter(prefix="/usage", tags=["Usage"])


@router.get("", response_model=UsageSnapshot)
async def get_usage(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> UsageSnapshot:
    """
    Current plan, usage this calendar month and limit.

    Administrators always get an unlimited snapshot.
    """
    if is_admin(current_user):
        return admin_snapshot()

    return await UsageSnapshotService(db).snapshot(current_user_id(current_user))


async def _limit_exceeded_response(
    request: Request,
    db: AsyncSession,
    user_id: UUID,
    exc: MonthlyLimitExceededError,
) -> JSONResponse:
    snapshot = await UsageSnapshotService(db).snapshot(user_id)
    return gating_error_response(request, exc, usage=snapshot.usage.model_dump(mode="json"))


@router.post("/check", response_model=QuotaDecision)
async def check_quota(
    check: QuotaCheckRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """
    Ask whether the caller may perform an action now.

    Call before starting a generation. Denials come back as 403, or 429 with
    ``Retry-After`` and the current usage figures when the monthly limit is
    reached. This check does not consume quota; record usage after the
    generation succeeds.
    """
    user_id = current_user_id(current_user)
    gate = AdminBypassQuotaGate(db, strict=settings.strict_quota_enforcement)

    try:
        return await gate.evaluate(user_id, current_user["role"], check.action)
    except MonthlyLimitExceededError as e:
        return await _limit_exceeded_response(request, db, user_id, e)


@router.post("/record", response_model=UsageLog, status_code=status.HTTP_201_CREATED)
async def record_usage(
    usage_data: UsageLogCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """
    Record one successful generation.

    - **action**: Kind of billable action
    - **metadata**: Free-form context; a ``resourceType`` key is stored in its own column

    With strict quota enforcement the gate is evaluated again under the
    subscription row lock and the entry is appended in the same transaction,
    so a user can never record past the monthly limit.
    """
    user_id = current_user_id(current_user)

    if settings.strict_quota_enforcement:
        gate = AdminBypassQuotaGate(db, strict=True)
        try:
            await gate.evaluate(user_id, current_user["role"], gated_action_for(usage_data.action))
        except MonthlyLimitExceededError as e:
            return await _limit_exceeded_response(request, db, user_id, e)

    entry = await UsageRecorder(db).record(user_id, usage_data.action, usage_data.metadata)
    return UsageLog.model_validate(entry)


@router.get("/logs", response_model=UsageLogList)
async def list_usage_logs(
    current_month: bool = Query(True, description="Only entries from the current calendar month"),
    page: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> UsageLogList:
    """The caller's usage entries, newest first."""
    entries, total = await UsageLedger(db).list_for_user(
        current_user_id(current_user),
        since=month_start() if current_month else None,
        page=page,
        page_size=page_size,
    )
    return UsageLogList(
        items=[UsageLog.model_validate(e) for e in entries],
        total=total,
        page=page,
        page_size=page_size,
    )
