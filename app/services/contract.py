import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

import app.repositories.contract as contract_repo
import app.repositories.property as property_repo
import app.repositories.user as user_repo
import app.services.payment as payment_service
from app.core.clock import utcnow
from app.core.config import settings
from app.db.models.contract import Contract as ContractModel
from app.db.models.user import User
from app.domain.access import (
    ROLE_ADMIN,
    ROLE_STUDENT,
    can_cancel,
    can_complete,
    can_create_contract,
    can_edit_terms,
    can_sign,
    can_view,
    ensure_allowed,
)
from app.domain.contract_lifecycle import (
    ContractEvent,
    ContractStatus,
    SignatoryRole,
    can_transition,
    is_terminal,
)
from app.errors import (
    ConflictError,
    DomainValidationError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)
from app.services.payment_provider import PaymentProvider

logger = logging.getLogger(__name__)

SIGNATURE_PATTERN = re.compile(r"^data:image/(png|jpeg|jpg|webp);base64,[A-Za-z0-9+/=]+$")

_CENTS = Decimal("0.01")

# Property availability that follows each contract status.
_PROPERTY_STATUS_FOR = {
    ContractStatus.PENDING: "pending",
    ContractStatus.ACTIVE: "rented",
    ContractStatus.COMPLETED: "available",
    ContractStatus.CANCELLED: "available",
}

_TERM_FIELDS = ("monthly_rent", "charges", "deposit_amount", "start_date", "end_date")


@dataclass(frozen=True)
class SignResult:
    contract: ContractModel
    activated: bool


def compute_commission(monthly_rent: Decimal) -> tuple[Decimal, Decimal]:
    """Split the monthly rent into (platform commission, owner payout), rounded to cents."""
    rent = Decimal(monthly_rent)
    commission = (rent * settings.platform_commission_rate).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return commission, rent - commission


def _validate_terms(
    monthly_rent: Decimal | None,
    charges: Decimal | None,
    deposit_amount: Decimal | None,
    start_date: date | None,
    end_date: date | None,
) -> None:
    """Raise DomainValidationError unless the full set of terms is well formed."""
    if monthly_rent is None or start_date is None or end_date is None or deposit_amount is None:
        raise DomainValidationError(
            "monthly_rent, deposit_amount, start_date and end_date are required"
        )
    if monthly_rent <= 0:
        raise DomainValidationError("monthly_rent must be greater than 0")
    if deposit_amount <= 0:
        raise DomainValidationError("deposit_amount must be greater than 0")
    if charges is not None and charges < 0:
        raise DomainValidationError("charges cannot be negative")
    if end_date <= start_date:
        raise DomainValidationError(
            f"End date ({end_date}) must be after start date ({start_date})"
        )


def normalize_signature(signature: str | None) -> str:
    """Strip whitespace from a data-URI signature and check its format."""
    cleaned = re.sub(r"\s", "", signature or "")
    if not SIGNATURE_PATTERN.match(cleaned):
        raise DomainValidationError(
            "Invalid signature format. Expected: data:image/png;base64,..."
        )
    return cleaned


def _get_contract_or_404(db: Session, contract_id: int, for_update: bool = False) -> ContractModel:
    if for_update:
        contract = contract_repo.get_contract_for_update(db, contract_id)
    else:
        contract = contract_repo.get_contract_by_id(db, contract_id)
    if not contract:
        raise NotFoundError("Contract not found")
    return contract


def _sync_property_status(contract: ContractModel, status: ContractStatus) -> None:
    contract.property.status = _PROPERTY_STATUS_FOR[status]


def create_contract(
    db: Session,
    current_user: User,
    property_id: int,
    student_id: int,
    monthly_rent: Decimal,
    start_date: date,
    end_date: date,
    deposit_amount: Decimal | None = None,
    charges: Decimal | None = None,
    conversation_id: int | None = None,
) -> ContractModel:
    """
    Create a pending contract proposed by a property owner.

    - Caller must be a KYC-verified owner (not banned or muted)
    - Property must exist and belong to the caller
    - Tenant must exist and have the "student" role
    - Deposit defaults to DEFAULT_DEPOSIT_MONTHS x rent; charges default to 0
    - A property holds at most one pending or active contract
    """
    ensure_allowed(can_create_contract(current_user))

    if deposit_amount is None and monthly_rent is not None:
        deposit_amount = Decimal(monthly_rent) * settings.default_deposit_months
    if charges is None:
        charges = Decimal("0")
    _validate_terms(monthly_rent, charges, deposit_amount, start_date, end_date)

    db_property = property_repo.get_property_by_id(db, property_id)
    if not db_property:
        raise NotFoundError(f"Property with id {property_id} not found")
    if db_property.owner_id != current_user.id:
        raise ForbiddenError("This property does not belong to you", reason="NOT_PROPERTY_OWNER")

    student = user_repo.get_user_by_id(db, student_id)
    if not student:
        raise NotFoundError(f"User with id {student_id} not found")
    if student.role.name != ROLE_STUDENT:
        raise DomainValidationError(f"User with id {student_id} must have 'student' role")

    existing = contract_repo.get_open_contract_for_property(db, property_id)
    if existing:
        raise ConflictError(
            f"Property {property_id} already has an open contract (id {existing.id})"
        )

    commission, payout = compute_commission(monthly_rent)
    contract = contract_repo.create_contract(
        db,
        property_id=property_id,
        owner_id=current_user.id,
        student_id=student_id,
        conversation_id=conversation_id,
        monthly_rent=monthly_rent,
        charges=charges,
        deposit_amount=deposit_amount,
        platform_commission=commission,
        owner_payout=payout,
        start_date=start_date,
        end_date=end_date,
        is_editable=False,
    )
    property_repo.set_property_status(db, property_id, _PROPERTY_STATUS_FOR[ContractStatus.PENDING])

    logger.info(
        "Contract %s created by owner %s for student %s on property %s",
        contract.id,
        current_user.id,
        student_id,
        property_id,
    )
    return contract


def get_contract_for_user(db: Session, contract_id: int, current_user: User) -> ContractModel:
    """Get a contract if the caller is one of its parties or an admin."""
    contract = _get_contract_or_404(db, contract_id)
    ensure_allowed(can_view(current_user, contract))
    return contract


def get_contract_by_conversation_for_user(
    db: Session, conversation_id: int, current_user: User
) -> ContractModel:
    """Get the latest contract proposed in a messaging conversation."""
    contract = contract_repo.get_latest_contract_by_conversation(db, conversation_id)
    if not contract:
        raise NotFoundError("No contract found for this conversation")
    ensure_allowed(can_view(current_user, contract))
    return contract


def list_contracts_for_user(
    db: Session,
    current_user: User,
    page: int = 1,
    page_size: int = 100,
    status: ContractStatus | None = None,
    property_id: int | None = None,
) -> tuple[list[ContractModel], int]:
    """
    List contracts visible to the caller.

    - Admin: all contracts, optionally filtered by property
    - Anyone else: contracts where they are owner or student
    """
    party_id = None if current_user.role.name == ROLE_ADMIN else current_user.id
    return contract_repo.get_all_contracts_paginated(
        db,
        page=page,
        page_size=page_size,
        party_id=party_id,
        property_id=property_id,
        status=status.value if status else None,
    )


def _signature_for(contract: ContractModel, role: SignatoryRole) -> str | None:
    return contract.owner_signature if role == SignatoryRole.OWNER else contract.student_signature


def sign_contract(
    db: Session,
    contract_id: int,
    current_user: User,
    role: SignatoryRole,
    signature: str,
) -> SignResult:
    """
    Record the caller's signature for ``role`` and activate the contract once both parties signed.

    Raises:
        DomainValidationError: signature is not an image data URI
        ForbiddenError: caller is not the party for ``role`` or is banned/muted
        InvalidStateError: contract is no longer pending and that party never signed
        ConflictError: that party already signed (existing signature untouched)
    """
    role = SignatoryRole(role)
    signature = normalize_signature(signature)

    contract = _get_contract_or_404(db, contract_id, for_update=True)
    ensure_allowed(can_sign(current_user, contract, role))

    if _signature_for(contract, role) is not None:
        raise ConflictError(f"The {role.value} has already signed this contract")
    if contract.status != ContractStatus.PENDING.value:
        raise InvalidStateError(
            f"Contract cannot be signed (status: {contract.status})"
        )

    now = utcnow()
    if not contract_repo.record_signature(db, contract_id, role, signature, now):
        # Lost a race against another request on the same row.
        db.rollback()
        contract = _get_contract_or_404(db, contract_id)
        if _signature_for(contract, role) is not None:
            raise ConflictError(f"The {role.value} has already signed this contract")
        raise InvalidStateError(f"Contract cannot be signed (status: {contract.status})")

    activated = contract_repo.activate_if_fully_signed(db, contract_id, now)
    if activated:
        _sync_property_status(contract, ContractStatus.ACTIVE)
    db.commit()
    db.refresh(contract)

    logger.info("Contract %s signed by %s (user %s)", contract_id, role.value, current_user.id)
    if activated:
        logger.info("Contract %s activated", contract_id)
    return SignResult(contract=contract, activated=activated)


def update_terms(
    db: Session,
    contract_id: int,
    current_user: User,
    **update_fields,
) -> ContractModel:
    """
    Update the financial terms and dates of a contract.

    Allowed while the contract is pending, or afterwards when the owner has
    set the ``is_editable`` override. Only fields explicitly provided are
    updated; the merged terms are validated as a whole. Changing the rent
    recomputes commission and payout.
    """
    contract = _get_contract_or_404(db, contract_id, for_update=True)
    ensure_allowed(can_edit_terms(current_user, contract))

    if contract.status != ContractStatus.PENDING.value and not contract.is_editable:
        raise InvalidStateError(
            f"Contract terms cannot be modified (status: {contract.status})"
        )

    changes = {field: update_fields[field] for field in _TERM_FIELDS if field in update_fields}
    if not changes:
        raise DomainValidationError("No fields to update")
    if any(value is None for value in changes.values()):
        raise DomainValidationError("Contract terms cannot be cleared")

    merged = {field: changes.get(field, getattr(contract, field)) for field in _TERM_FIELDS}
    _validate_terms(**merged)

    if "monthly_rent" in changes:
        commission, payout = compute_commission(changes["monthly_rent"])
        changes["platform_commission"] = commission
        changes["owner_payout"] = payout

    contract = contract_repo.update_contract(db, contract_id, **changes)
    logger.info(
        "Contract %s terms updated by user %s: %s",
        contract_id,
        current_user.id,
        sorted(changes),
    )
    return contract


def set_editable(
    db: Session, contract_id: int, current_user: User, is_editable: bool
) -> ContractModel:
    """Set or clear the owner's override allowing term edits outside the pending state."""
    contract = _get_contract_or_404(db, contract_id, for_update=True)
    ensure_allowed(can_edit_terms(current_user, contract))

    if is_terminal(contract.status):
        raise InvalidStateError(
            f"Contract is {contract.status} and can no longer be edited"
        )
    return contract_repo.update_contract(db, contract_id, is_editable=is_editable)


def cancel_contract(
    db: Session,
    contract_id: int,
    current_user: User,
    provider: PaymentProvider,
    reason: str | None = None,
) -> ContractModel:
    """
    Cancel a pending or active contract.

    The cancellation is committed first. If the contract was active with a
    rent subscription, the subscription is then unlinked best-effort: a
    processor failure is logged and flagged for reconciliation but the
    contract stays cancelled.
    """
    contract = _get_contract_or_404(db, contract_id, for_update=True)
    ensure_allowed(can_cancel(current_user, contract))

    from_status = ContractStatus(contract.status)
    if not can_transition(from_status, ContractStatus.CANCELLED, ContractEvent.CANCEL):
        raise InvalidStateError(f"Contract cannot be cancelled (status: {contract.status})")

    now = utcnow()
    moved = contract_repo.transition_status(
        db,
        contract_id,
        ContractEvent.CANCEL,
        ContractStatus.CANCELLED,
        cancelled_at=now,
        cancelled_by_id=current_user.id,
        cancellation_reason=reason,
        is_editable=False,
        updated_at=now,
    )
    if not moved:
        db.rollback()
        raise InvalidStateError("Contract status changed concurrently; reload and retry")
    _sync_property_status(contract, ContractStatus.CANCELLED)
    db.commit()
    db.refresh(contract)
    logger.info("Contract %s cancelled by user %s (was %s)", contract_id, current_user.id, from_status.value)

    if from_status == ContractStatus.ACTIVE and contract.stripe_subscription_id:
        payment_service.unlink_subscription_best_effort(db, provider, contract)
        db.refresh(contract)
    return contract


def _complete(db: Session, contract: ContractModel, provider: PaymentProvider) -> ContractModel:
    now = utcnow()
    moved = contract_repo.transition_status(
        db,
        contract.id,
        ContractEvent.COMPLETE,
        ContractStatus.COMPLETED,
        completed_at=now,
        is_editable=False,
        updated_at=now,
    )
    if not moved:
        db.rollback()
        raise InvalidStateError("Contract status changed concurrently; reload and retry")
    _sync_property_status(contract, ContractStatus.COMPLETED)
    db.commit()
    db.refresh(contract)
    logger.info("Contract %s completed", contract.id)

    if contract.stripe_subscription_id:
        payment_service.unlink_subscription_best_effort(db, provider, contract)
        db.refresh(contract)
    return contract


def complete_contract(
    db: Session,
    contract_id: int,
    current_user: User,
    provider: PaymentProvider,
) -> ContractModel:
    """
    Mark an active contract as completed. Idempotent on an already completed contract.

    Like cancellation, the rent subscription is unlinked best-effort afterwards.
    """
    contract = _get_contract_or_404(db, contract_id, for_update=True)
    ensure_allowed(can_complete(current_user, contract))

    if contract.status == ContractStatus.COMPLETED.value:
        return contract
    if not can_transition(contract.status, ContractStatus.COMPLETED, ContractEvent.COMPLETE):
        raise InvalidStateError(f"Contract cannot be completed (status: {contract.status})")
    return _complete(db, contract, provider)


def complete_expired_contracts(
    db: Session,
    provider: PaymentProvider,
    as_of: date | None = None,
) -> list[ContractModel]:
    """Complete every active contract whose end date is before ``as_of`` (default: today)."""
    as_of = as_of or date.today()
    completed = []
    for contract in contract_repo.get_expired_active_contracts(db, as_of):
        try:
            completed.append(_complete(db, contract, provider))
        except InvalidStateError:
            logger.info("Contract %s changed state during expiry sweep; skipped", contract.id)
    logger.info("Expiry sweep as of %s completed %d contract(s)", as_of, len(completed))
    return completed
