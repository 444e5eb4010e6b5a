"""Fee Schemas — the estimate endpoint's response."""

from decimal import Decimal

from pydantic import BaseModel


class FeeEstimateResponse(BaseModel):
    amount: Decimal
    buyer_fee: Decimal
    seller_fee: Decimal
    total_amount: Decimal
    seller_payout: Decimal
