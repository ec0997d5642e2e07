from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from app.domain.payment_status import PaymentStatus, PaymentType


class Payment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contract_id: int
    payment_type: PaymentType
    amount: Decimal
    platform_fee: Decimal
    owner_payout: Decimal
    payment_status: PaymentStatus
    provider_ref: str
    failure_reason: str | None = None
    created_at: datetime
    paid_at: datetime | None = None


class PaymentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    contract_id: int
    contract_status: str
    owner_payment_ready: bool
    subscription_status: str
    subscription_ref: str | None = None
    subscription_unlink_pending: bool
    deposit_status: str
    payment_ready: bool


class ReconcileResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    resolved: list[int]
    still_pending: list[int]


class PaymentAccount(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stripe_account_id: str
    onboarding_complete: bool
    payouts_enabled: bool
    charges_enabled: bool


class PaymentAccountStatus(BaseModel):
    has_account: bool
    account: PaymentAccount | None = None


class OnboardingLink(BaseModel):
    url: str


class WebhookAck(BaseModel):
    received: bool
    type: str
    handled: bool
