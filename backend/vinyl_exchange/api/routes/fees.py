"""Fee Estimate — exposes the fee engine to the offer and checkout dialogs.

Invariants:
    - Same compute_fees and configured rate as settlement: the estimate is the charge
    - No authentication: fee math is public
"""

from decimal import Decimal

from fastapi import APIRouter, Query

from vinyl_exchange.config import get_settings
from vinyl_exchange.core.compute_fees import compute_fees
from vinyl_exchange.schemas.fee import FeeEstimateResponse

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


@router.get("/estimate", response_model=FeeEstimateResponse)
async def estimate_fees(
    amount: Decimal = Query(..., max_digits=10, decimal_places=2),
    buyer_is_pro: bool = Query(False),
    seller_is_pro: bool = Query(False),
):
    """Fee breakdown for an offer amount."""
    fees = compute_fees(amount, buyer_is_pro, seller_is_pro, get_settings().fee_rate)
    return FeeEstimateResponse(
        amount=fees.amount,
        buyer_fee=fees.buyer_fee,
        seller_fee=fees.seller_fee,
        total_amount=fees.total,
        seller_payout=fees.seller_payout,
    )
