"""Payment Routes — checkout creation and post-redirect verification.

Invariants:
    - create-payment requires the bearer identity to be the offer's buyer
    - verify-payment is idempotent and safe for the success page to call on every load
    - Redirect URLs are built from the calling page's Origin header

Design Decisions:
    - verify-payment needs no identity: the session id is an unguessable capability
      and the outcome is derived from the processor, not from the caller
"""

from fastapi import APIRouter, Depends

from vinyl_exchange.api.dependencies import (
    get_current_user_id, get_origin, get_payment_settlement,
)
from vinyl_exchange.core.domain_types import UserId
from vinyl_exchange.schemas.payment import (
    CreatePaymentRequest, CreatePaymentResponse,
    VerifyPaymentRequest, VerifyPaymentResponse,
)
from vinyl_exchange.services.payment_settlement import PaymentSettlement

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post("/create-payment", response_model=CreatePaymentResponse)
async def create_payment(
    body: CreatePaymentRequest,
    origin: str = Depends(get_origin),
    user_id: UserId = Depends(get_current_user_id),
    settlement: PaymentSettlement = Depends(get_payment_settlement),
):
    url = await settlement.initiate_checkout(body.offer_id, user_id, origin)
    return CreatePaymentResponse(url=url)


@router.post("/verify-payment", response_model=VerifyPaymentResponse)
async def verify_payment(
    body: VerifyPaymentRequest,
    settlement: PaymentSettlement = Depends(get_payment_settlement),
):
    return await settlement.verify_payment(body.session_id)
