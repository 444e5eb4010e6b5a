"""Payment Schemas — checkout and verification contracts.

Invariants:
    - Request bodies accept the frontend's camelCase keys (offerId, sessionId)
      as well as snake_case
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CreatePaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    offer_id: UUID = Field(alias="offerId")


class CreatePaymentResponse(BaseModel):
    url: str


class VerifyPaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1, max_length=255)


class VerifyPaymentResponse(BaseModel):
    success: bool
    status: str | None
    order_status: str | None = None
