from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RedeemRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    email: str | None = Field(default=None, max_length=320)
    name: str | None = Field(default=None, max_length=256)


class RedeemResponse(BaseModel):
    token: str


class CheckoutSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    price_id: str = Field(alias="priceId", min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=320)
    metadata: dict[str, str] | None = None


class CheckoutSessionResponse(BaseModel):
    url: str


class DemoCheckoutRequest(BaseModel):
    email: str | None = Field(default=None, max_length=320)
    metadata: dict[str, object] | None = None


class DemoCheckoutResponse(BaseModel):
    code: str


class StoreDiscountCodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_session_id: str = Field(alias="stripeSessionId", min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=320)


class StoreDiscountCodeResponse(BaseModel):
    success: bool = True
    code: str


class RedeemDiscountCodeRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
