"""Owner-only endpoints used by the in-app admin tab and the standalone dashboard."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from exchange_app.api.dependencies.auth import OwnerPrincipal, require_owner
from exchange_app.api.dependencies.services import get_exchange_request_service
from exchange_app.schemas.admin import UserListResponse, UserStatusResponse, UserStatusUpdate
from exchange_app.schemas.exchange import (
    ExchangeRequestListResponse,
    ExchangeRequestResponse,
    RequestStateUpdate,
)
from exchange_app.schemas.rates import RatesUpdateRequest, TodayRatesResponse
from exchange_app.services.exchange_requests import ExchangeRequestService
from exchange_app.services.rates import RatesService, get_rates_service
from exchange_app.services.users import UserAdminService, get_user_admin_service

logger = logging.getLogger("exchange_app.api.admin")

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/rates/today", response_model=TodayRatesResponse)
def admin_today_rates(
    owner: OwnerPrincipal = Depends(require_owner),
    rates_service: RatesService = Depends(get_rates_service),
) -> TodayRatesResponse:
    del owner
    day, entry = rates_service.get_today()
    return TodayRatesResponse(date=day, data=entry)


@router.post("/rates/today", response_model=TodayRatesResponse)
def admin_set_today_rates(
    payload: RatesUpdateRequest,
    owner: OwnerPrincipal = Depends(require_owner),
    rates_service: RatesService = Depends(get_rates_service),
) -> TodayRatesResponse:
    """
    Save today's rates.

    **Errors:**
    - 400 RATES_MISSING: USD, RUB or USDT is absent
    - 400 BAD_NUMBERS: a required rate is not a positive number
    """
    day, entry = rates_service.set_today(
        payload.model_dump(exclude_none=True),
        updated_by=owner.tg_id,
    )
    return TodayRatesResponse(date=day, data=entry)


@router.get("/users", response_model=UserListResponse)
def admin_list_users(
    owner: OwnerPrincipal = Depends(require_owner),
    users: UserAdminService = Depends(get_user_admin_service),
) -> UserListResponse:
    del owner
    return UserListResponse(users=users.list_users())


@router.post("/users/{tg_id}/status", response_model=UserStatusResponse)
def admin_set_user_status(
    tg_id: str,
    payload: UserStatusUpdate,
    owner: OwnerPrincipal = Depends(require_owner),
    users: UserAdminService = Depends(get_user_admin_service),
) -> UserStatusResponse:
    """Accepts ``standard``/``silver``/``gold`` or their Russian names."""
    record = users.set_status(tg_id, payload.status)
    logger.info(
        "Owner changed user status",
        extra={"tg_user_id": record.tg_id, "status": record.status.value, "via": owner.via},
    )
    return UserStatusResponse(user=record)


@router.get("/requests", response_model=ExchangeRequestListResponse)
def admin_list_requests(
    owner: OwnerPrincipal = Depends(require_owner),
    requests: ExchangeRequestService = Depends(get_exchange_request_service),
) -> ExchangeRequestListResponse:
    del owner
    return ExchangeRequestListResponse(requests=requests.list_requests())


@router.post("/requests/{request_id}/state", response_model=ExchangeRequestResponse)
def admin_set_request_state(
    request_id: str,
    payload: RequestStateUpdate,
    owner: OwnerPrincipal = Depends(require_owner),
    requests: ExchangeRequestService = Depends(get_exchange_request_service),
) -> ExchangeRequestResponse:
    del owner
    return ExchangeRequestResponse(request=requests.set_state(request_id, payload.state))


__all__ = ["router"]
