from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from app.db.models.payment import Payment as PaymentModel
from app.domain.payment_status import PaymentStatus, PaymentType


def get_payment_by_provider_ref_for_update(
    db: Session, provider_ref: str
) -> PaymentModel | None:
    """Get a payment record by processor reference with a row lock."""
    return (
        db.query(PaymentModel)
        .filter(PaymentModel.provider_ref == provider_ref)
        .populate_existing()
        .with_for_update()
        .first()
    )


def get_payment_by_provider_ref(db: Session, provider_ref: str) -> PaymentModel | None:
    return db.query(PaymentModel).filter(PaymentModel.provider_ref == provider_ref).first()


def get_payments_by_contract_id(db: Session, contract_id: int) -> list[PaymentModel]:
    """Get all payment records of a contract, newest first."""
    return (
        db.query(PaymentModel)
        .filter(PaymentModel.contract_id == contract_id)
        .order_by(PaymentModel.created_at.desc(), PaymentModel.id.desc())
        .all()
    )


def get_latest_deposit(db: Session, contract_id: int) -> PaymentModel | None:
    return (
        db.query(PaymentModel)
        .filter(
            PaymentModel.contract_id == contract_id,
            PaymentModel.payment_type == PaymentType.DEPOSIT.value,
        )
        .order_by(PaymentModel.created_at.desc(), PaymentModel.id.desc())
        .first()
    )


def get_succeeded_deposit(
    db: Session, contract_id: int, exclude_id: int | None = None
) -> PaymentModel | None:
    """Get the successful deposit of a contract. Used to enforce one per contract."""
    query = db.query(PaymentModel).filter(
        PaymentModel.contract_id == contract_id,
        PaymentModel.payment_type == PaymentType.DEPOSIT.value,
        PaymentModel.payment_status == PaymentStatus.SUCCEEDED.value,
    )
    if exclude_id is not None:
        query = query.filter(PaymentModel.id != exclude_id)
    return query.first()


def create_payment(
    db: Session,
    contract_id: int,
    payment_type: PaymentType,
    amount: Decimal,
    provider_ref: str,
    payment_status: PaymentStatus = PaymentStatus.PENDING,
    platform_fee: Decimal = Decimal("0"),
    owner_payout: Decimal = Decimal("0"),
    failure_reason: str | None = None,
    paid_at: datetime | None = None,
) -> PaymentModel:
    """Create a new payment record. Pure data access - no business logic."""
    db_payment = PaymentModel(
        contract_id=contract_id,
        payment_type=payment_type.value,
        amount=amount,
        platform_fee=platform_fee,
        owner_payout=owner_payout,
        payment_status=payment_status.value,
        provider_ref=provider_ref,
        failure_reason=failure_reason,
        paid_at=paid_at,
    )
    db.add(db_payment)
    db.commit()
    db.refresh(db_payment)
    return db_payment
