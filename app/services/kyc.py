"""Identity verification: students and owners submit documents, admins review them."""

import logging

from sqlalchemy.orm import Session

import app.repositories.kyc as kyc_repo
import app.repositories.user as user_repo
from app.core.clock import utcnow
from app.db.models.kyc_verification import KycVerification as KycModel
from app.db.models.user import User as UserModel
from app.errors import ConflictError, DomainValidationError, InvalidStateError, NotFoundError

logger = logging.getLogger(__name__)

KYC_PENDING = "pending"
KYC_APPROVED = "approved"
KYC_REJECTED = "rejected"
KYC_NOT_SUBMITTED = "not_submitted"


def submit_kyc(
    db: Session,
    current_user: UserModel,
    id_card_front_ref: str,
    id_card_back_ref: str,
    selfie_ref: str,
) -> KycModel:
    """
    Submit identity documents for review.

    Raises:
        ConflictError: If the user is already verified or has a submission pending
    """
    if current_user.kyc_verified:
        raise ConflictError("Your identity is already verified")

    latest = kyc_repo.get_latest_kyc_for_user(db, current_user.id)
    if latest and latest.status == KYC_PENDING:
        raise ConflictError("A verification is already pending review")

    kyc = kyc_repo.create_kyc(
        db,
        user_id=current_user.id,
        id_card_front_ref=id_card_front_ref,
        id_card_back_ref=id_card_back_ref,
        selfie_ref=selfie_ref,
    )
    logger.info("KYC %s submitted by user %s", kyc.id, current_user.id)
    return kyc


def get_kyc_status(db: Session, current_user: UserModel) -> tuple[str, KycModel | None]:
    """Return the user's latest verification status, and the verification itself if any."""
    latest = kyc_repo.get_latest_kyc_for_user(db, current_user.id)
    if latest is None:
        return KYC_NOT_SUBMITTED, None
    return latest.status, latest


def list_pending_kyc(db: Session) -> list[KycModel]:
    return kyc_repo.get_pending_kyc(db)


def _get_pending_or_raise(db: Session, kyc_id: int) -> KycModel:
    kyc = kyc_repo.get_kyc_by_id(db, kyc_id)
    if not kyc:
        raise NotFoundError("Verification not found")
    if kyc.status != KYC_PENDING:
        raise InvalidStateError(f"Verification has already been reviewed (status: {kyc.status})")
    return kyc


def approve_kyc(db: Session, kyc_id: int, admin: UserModel) -> KycModel:
    """Approve a pending verification and mark its user as KYC-verified."""
    kyc = _get_pending_or_raise(db, kyc_id)
    kyc = kyc_repo.review_kyc(
        db, kyc, KYC_APPROVED, reviewed_by_id=admin.id, reviewed_at=utcnow()
    )
    user_repo.set_kyc_verified(db, kyc.user_id, True)
    logger.info("KYC %s approved by admin %s", kyc_id, admin.id)
    return kyc


def reject_kyc(db: Session, kyc_id: int, admin: UserModel, reason: str) -> KycModel:
    if not reason or not reason.strip():
        raise DomainValidationError("A rejection reason is required")

    kyc = _get_pending_or_raise(db, kyc_id)
    kyc = kyc_repo.review_kyc(
        db,
        kyc,
        KYC_REJECTED,
        reviewed_by_id=admin.id,
        reviewed_at=utcnow(),
        rejection_reason=reason.strip(),
    )
    logger.info("KYC %s rejected by admin %s", kyc_id, admin.id)
    return kyc
