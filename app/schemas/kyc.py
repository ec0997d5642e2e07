from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Kyc(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    status: str
    rejection_reason: str | None = None
    submitted_at: datetime
    reviewed_at: datetime | None = None


class KycSubmit(BaseModel):
    id_card_front_ref: str = Field(..., min_length=1, max_length=500)
    id_card_back_ref: str = Field(..., min_length=1, max_length=500)
    selfie_ref: str = Field(..., min_length=1, max_length=500)


class KycStatus(BaseModel):
    status: str
    kyc_verified: bool
    verification: Kyc | None = None


class KycReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
