"""Fee Computation — buyer/seller fees and checkout total for an offer amount.

Invariants:
    - PURE: no IO, no config lookup — the rate is passed in by the caller
    - buyer_fee and seller_fee are computed independently from the same rate
    - Pro buyers pay no buyer fee; the seller fee applies regardless of seller tier
    - total == amount + buyer_fee, every figure quantized to cents ROUND_HALF_UP
    - Single source of truth for the estimate endpoint AND settlement

Design Decisions:
    - seller_is_pro accepted but unused in the math: keeps the call signature stable
      if a seller-side discount is ever introduced
    - Decimal(str(x)) for non-Decimal input: avoids binary-float artefacts (0.1 + 0.2)
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from vinyl_exchange.core.errors import ValidationError

CENT = Decimal("0.01")


@dataclass(frozen=True)
class FeeBreakdown:
    """Fees and totals for a single transaction."""
    amount: Decimal
    buyer_fee: Decimal
    seller_fee: Decimal
    total: Decimal
    seller_payout: Decimal

    def to_dict(self) -> dict:
        return {
            "amount": str(self.amount),
            "buyer_fee": str(self.buyer_fee),
            "seller_fee": str(self.seller_fee),
            "total_amount": str(self.total),
            "seller_payout": str(self.seller_payout),
        }


def round_to_cents(value: Decimal) -> Decimal:
    """Quantize to 2 decimal places, half-up at the cent."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def compute_fees(
    amount: Decimal | int | float | str,
    buyer_is_pro: bool,
    seller_is_pro: bool,
    rate: Decimal,
) -> FeeBreakdown:
    """Compute fees for an offer amount. Raises ValidationError if amount <= 0."""
    value = to_decimal(amount)
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be greater than zero", field="amount")

    base_fee = round_to_cents(value * rate)
    buyer_fee = Decimal("0.00") if buyer_is_pro else base_fee
    seller_fee = base_fee

    return FeeBreakdown(
        amount=round_to_cents(value),
        buyer_fee=buyer_fee,
        seller_fee=seller_fee,
        total=round_to_cents(value + buyer_fee),
        seller_payout=round_to_cents(value - seller_fee),
    )


def to_minor_units(amount: Decimal) -> int:
    """Convert a cent-precision amount to integer minor units (cents) for the processor."""
    return int((round_to_cents(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))
