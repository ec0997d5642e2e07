from datetime import datetime

from sqlalchemy.orm import Session

from app.db.models.kyc_verification import KycVerification as KycModel


def get_kyc_by_id(db: Session, kyc_id: int) -> KycModel | None:
    return db.query(KycModel).filter(KycModel.id == kyc_id).first()


def get_latest_kyc_for_user(db: Session, user_id: int) -> KycModel | None:
    return (
        db.query(KycModel)
        .filter(KycModel.user_id == user_id)
        .order_by(KycModel.submitted_at.desc(), KycModel.id.desc())
        .first()
    )


def get_pending_kyc(db: Session) -> list[KycModel]:
    """Get all verifications awaiting review, oldest first."""
    return (
        db.query(KycModel)
        .filter(KycModel.status == "pending")
        .order_by(KycModel.submitted_at, KycModel.id)
        .all()
    )


def create_kyc(
    db: Session,
    user_id: int,
    id_card_front_ref: str,
    id_card_back_ref: str,
    selfie_ref: str,
) -> KycModel:
    """Create a pending verification. Pure data access - no business logic."""
    kyc = KycModel(
        user_id=user_id,
        id_card_front_ref=id_card_front_ref,
        id_card_back_ref=id_card_back_ref,
        selfie_ref=selfie_ref,
        status="pending",
    )
    db.add(kyc)
    db.commit()
    db.refresh(kyc)
    return kyc


def review_kyc(
    db: Session,
    kyc: KycModel,
    status: str,
    reviewed_by_id: int,
    reviewed_at: datetime,
    rejection_reason: str | None = None,
) -> KycModel:
    kyc.status = status
    kyc.reviewed_by_id = reviewed_by_id
    kyc.reviewed_at = reviewed_at
    kyc.rejection_reason = rejection_reason
    db.commit()
    db.refresh(kyc)
    return kyc
