from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.db.models.user import User
from app.schemas.kyc import Kyc, KycReject, KycStatus, KycSubmit
from app.services import kyc as kyc_service

router = APIRouter(prefix="/kyc", tags=["kyc"])


@router.post("", response_model=Kyc, status_code=status.HTTP_201_CREATED)
def submit_kyc(
    submission: KycSubmit,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("student", "owner")),
):
    """Submit identity documents for review."""
    kyc = kyc_service.submit_kyc(
        db,
        current_user,
        id_card_front_ref=submission.id_card_front_ref,
        id_card_back_ref=submission.id_card_back_ref,
        selfie_ref=submission.selfie_ref,
    )
    return Kyc.model_validate(kyc)


@router.get("/status", response_model=KycStatus)
def get_kyc_status(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    kyc_status, kyc = kyc_service.get_kyc_status(db, current_user)
    return KycStatus(
        status=kyc_status,
        kyc_verified=current_user.kyc_verified,
        verification=Kyc.model_validate(kyc) if kyc else None,
    )


@router.get("/pending", response_model=list[Kyc])
def list_pending_kyc(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    """Verifications awaiting review, oldest first. Admin only."""
    return [Kyc.model_validate(k) for k in kyc_service.list_pending_kyc(db)]


@router.put("/{kyc_id}/approve", response_model=Kyc)
def approve_kyc(
    kyc_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    return Kyc.model_validate(kyc_service.approve_kyc(db, kyc_id, current_user))


@router.put("/{kyc_id}/reject", response_model=Kyc)
def reject_kyc(
    kyc_id: int,
    request: KycReject,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    return Kyc.model_validate(kyc_service.reject_kyc(db, kyc_id, current_user, request.reason))
