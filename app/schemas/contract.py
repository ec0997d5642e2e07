from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.domain.contract_lifecycle import ContractStatus, SignatoryRole


class Contract(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    property_id: int
    owner_id: int
    student_id: int
    conversation_id: int | None = None
    monthly_rent: Decimal
    charges: Decimal
    deposit_amount: Decimal
    platform_commission: Decimal
    owner_payout: Decimal
    start_date: date
    end_date: date
    status: ContractStatus
    is_editable: bool
    owner_signed_at: datetime | None = None
    student_signed_at: datetime | None = None
    activated_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancelled_by_id: int | None = None
    cancellation_reason: str | None = None
    stripe_subscription_id: str | None = None
    deposit_payment_ref: str | None = None
    subscription_unlink_pending: bool
    created_at: datetime
    updated_at: datetime | None = None


class ContractCreate(BaseModel):
    property_id: int
    student_id: int
    conversation_id: int | None = None
    monthly_rent: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    charges: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    deposit_amount: Decimal | None = Field(
        None, gt=0, max_digits=10, decimal_places=2, description="Defaults to 3 months of rent"
    )
    start_date: date
    end_date: date


class ContractUpdate(BaseModel):
    monthly_rent: Decimal | None = Field(None, gt=0, max_digits=10, decimal_places=2)
    charges: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    deposit_amount: Decimal | None = Field(None, gt=0, max_digits=10, decimal_places=2)
    start_date: date | None = None
    end_date: date | None = None


class ContractSign(BaseModel):
    role: SignatoryRole
    signature: str = Field(..., description="data:image/png;base64,... signature image")


class ContractSignResult(BaseModel):
    contract: Contract
    activated: bool


class ContractCancel(BaseModel):
    reason: str | None = Field(None, max_length=1000)


class ContractEditable(BaseModel):
    is_editable: bool


class CompleteExpiredRequest(BaseModel):
    as_of: date | None = None


class CompleteExpiredResult(BaseModel):
    completed_ids: list[int]
