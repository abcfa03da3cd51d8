"""Exchange requests submitted from the Mini App."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from exchange_app.api.dependencies.auth import get_auth_context
from exchange_app.api.dependencies.services import get_exchange_request_service
from exchange_app.models.store import RequestUser
from exchange_app.schemas.exchange import ExchangeRequestCreate, ExchangeRequestResponse
from exchange_app.services.auth_service import AuthContext
from exchange_app.services.exchange_requests import ExchangeRequestService, parse_request_draft

router = APIRouter(tags=["requests"])


@router.post("/requests", response_model=ExchangeRequestResponse)
async def create_request(
    payload: ExchangeRequestCreate,
    context: AuthContext = Depends(get_auth_context),
    service: ExchangeRequestService = Depends(get_exchange_request_service),
) -> ExchangeRequestResponse:
    """
    Validate the request, post it to the owner's group and store it.

    **Errors:**
    - 400 BAD_CURRENCY / BAD_AMOUNT / BAD_METHOD: invalid input
    - 400 GROUP_NOT_SET: no group chat configured
    - 502 TELEGRAM_SEND_FAILED: Telegram refused the message
    """
    draft = parse_request_draft(payload.model_dump())
    identity = context.identity
    request = await service.submit(
        draft,
        user=RequestUser(
            id=identity.user_id,
            username=identity.username,
            first_name=identity.first_name,
            last_name=identity.last_name,
        ),
        status=context.user.status,
    )
    return ExchangeRequestResponse(request=request)


__all__ = ["router"]
