import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

import app.repositories.contract as contract_repo
import app.repositories.payment as payment_repo
import app.repositories.payment_account as account_repo
from app.core.clock import utcnow
from app.core.config import settings
from app.db.models.contract import Contract as ContractModel
from app.db.models.owner_payment_account import OwnerPaymentAccount as AccountModel
from app.db.models.payment import Payment as PaymentModel
from app.db.models.user import User
from app.domain.access import (
    can_manage_payments,
    can_pay_deposit,
    can_view,
    ensure_allowed,
)
from app.domain.contract_lifecycle import OPEN_STATUSES, ContractStatus
from app.domain.payment_status import PaymentStatus, PaymentType, can_apply_payment_status
from app.errors import (
    ConflictError,
    DomainValidationError,
    InvalidStateError,
    NotFoundError,
    OwnerSetupRequiredError,
    PaymentReferenceNotFoundError,
    ProviderUnavailableError,
)
from app.services.payment_provider import PaymentProvider

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")

SUBSCRIPTION_NOT_APPLICABLE = "not_applicable"
SUBSCRIPTION_OWNER_SETUP_REQUIRED = "owner_setup_required"
SUBSCRIPTION_PAYMENT_REQUIRED = "payment_required"
SUBSCRIPTION_ACTIVE = "active"

DEPOSIT_NONE = "none"


@dataclass(frozen=True)
class PaymentSummary:
    contract_id: int
    contract_status: str
    owner_payment_ready: bool
    subscription_status: str
    subscription_ref: str | None
    subscription_unlink_pending: bool
    deposit_status: str
    payment_ready: bool


@dataclass(frozen=True)
class ReconcileResult:
    resolved: list[int]
    still_pending: list[int]


def _platform_fee(amount: Decimal) -> Decimal:
    return (Decimal(amount) * settings.platform_commission_rate).quantize(
        _CENTS, rounding=ROUND_HALF_UP
    )


def _get_contract_or_404(db: Session, contract_id: int, for_update: bool = False) -> ContractModel:
    if for_update:
        contract = contract_repo.get_contract_for_update(db, contract_id)
    else:
        contract = contract_repo.get_contract_by_id(db, contract_id)
    if not contract:
        raise NotFoundError("Contract not found")
    return contract


def owner_payment_ready(db: Session, owner_id: int) -> bool:
    """True iff the owner has a payout account that finished processor onboarding."""
    return account_repo.get_ready_account_for_owner(db, owner_id) is not None


def _require_ready_account(db: Session, owner_id: int) -> AccountModel:
    account = account_repo.get_ready_account_for_owner(db, owner_id)
    if account is None:
        raise OwnerSetupRequiredError(
            "The owner has not completed payment account setup"
        )
    return account


def _deposit_status(db: Session, contract_id: int) -> str:
    if payment_repo.get_succeeded_deposit(db, contract_id):
        return PaymentStatus.SUCCEEDED.value
    latest = payment_repo.get_latest_deposit(db, contract_id)
    return latest.payment_status if latest else DEPOSIT_NONE


def payment_summary(db: Session, contract: ContractModel) -> PaymentSummary:
    """
    Derive the payment state shown to clients for a contract.

    Subscription status:
    - not_applicable: contract is not active
    - owner_setup_required: active, owner payout account not ready
    - payment_required: active, owner ready, no subscription attached
    - active: active with a subscription attached

    ``payment_ready`` is true when the contract is active and the owner can
    receive payouts, i.e. rent can be collected.
    """
    ready = owner_payment_ready(db, contract.owner_id)
    deposit_status = _deposit_status(db, contract.id)

    if contract.status != ContractStatus.ACTIVE.value:
        subscription_status = SUBSCRIPTION_NOT_APPLICABLE
    elif contract.stripe_subscription_id:
        subscription_status = SUBSCRIPTION_ACTIVE
    elif not ready:
        subscription_status = SUBSCRIPTION_OWNER_SETUP_REQUIRED
    else:
        subscription_status = SUBSCRIPTION_PAYMENT_REQUIRED

    return PaymentSummary(
        contract_id=contract.id,
        contract_status=contract.status,
        owner_payment_ready=ready,
        subscription_status=subscription_status,
        subscription_ref=contract.stripe_subscription_id,
        subscription_unlink_pending=bool(contract.subscription_unlink_pending),
        deposit_status=deposit_status,
        payment_ready=contract.status == ContractStatus.ACTIVE.value and ready,
    )


def get_payment_summary_for_user(
    db: Session, contract_id: int, current_user: User
) -> PaymentSummary:
    contract = _get_contract_or_404(db, contract_id)
    ensure_allowed(can_view(current_user, contract))
    return payment_summary(db, contract)


def list_payments_for_user(
    db: Session, contract_id: int, current_user: User
) -> list[PaymentModel]:
    contract = _get_contract_or_404(db, contract_id)
    ensure_allowed(can_view(current_user, contract))
    return payment_repo.get_payments_by_contract_id(db, contract_id)


def _check_attachable(db: Session, contract: ContractModel, subscription_ref: str | None) -> AccountModel:
    if contract.status != ContractStatus.ACTIVE.value:
        raise InvalidStateError(
            f"A subscription can only be attached to an active contract (status: {contract.status})"
        )
    if contract.stripe_subscription_id and contract.stripe_subscription_id != subscription_ref:
        raise ConflictError("This contract already has a rent subscription")
    return _require_ready_account(db, contract.owner_id)


def attach_subscription(db: Session, contract_id: int, subscription_ref: str) -> ContractModel:
    """
    Link a processor subscription to an active contract.

    Re-attaching the same reference is a no-op.

    Raises:
        InvalidStateError: contract is not active
        ConflictError: a different subscription is already attached
        OwnerSetupRequiredError: owner payout account is not ready
    """
    if not subscription_ref:
        raise DomainValidationError("subscription_ref is required")

    contract = _get_contract_or_404(db, contract_id, for_update=True)
    if contract.stripe_subscription_id == subscription_ref:
        return contract
    _check_attachable(db, contract, subscription_ref)

    other = contract_repo.get_contract_by_subscription_id(db, subscription_ref)
    if other is not None:
        raise ConflictError("This subscription is already attached to another contract")

    contract = contract_repo.update_contract(
        db, contract_id, stripe_subscription_id=subscription_ref, subscription_unlink_pending=False
    )
    logger.info("Subscription %s attached to contract %s", subscription_ref, contract_id)
    return contract


def start_subscription(
    db: Session, provider: PaymentProvider, contract_id: int, current_user: User
) -> ContractModel:
    """Create the monthly rent subscription at the processor and attach it."""
    contract = _get_contract_or_404(db, contract_id)
    ensure_allowed(can_manage_payments(current_user, contract))
    account = _check_attachable(db, contract, None)

    subscription_ref = provider.create_subscription(contract, account)
    return attach_subscription(db, contract_id, subscription_ref)


def record_deposit_intent(
    db: Session, contract_id: int, amount: Decimal, provider_ref: str
) -> PaymentModel:
    """
    Record a pending deposit payment against a contract.

    Raises:
        DomainValidationError: non-positive amount or missing reference
        ConflictError: deposit already paid, or reference already recorded
    """
    amount = Decimal(amount)
    if amount <= 0:
        raise DomainValidationError("Deposit amount must be greater than 0")
    if not provider_ref:
        raise DomainValidationError("provider_ref is required")

    _get_contract_or_404(db, contract_id)
    if payment_repo.get_succeeded_deposit(db, contract_id):
        raise ConflictError("The deposit for this contract has already been paid")
    if payment_repo.get_payment_by_provider_ref(db, provider_ref):
        raise ConflictError(f"Payment {provider_ref} is already recorded")

    fee = _platform_fee(amount)
    payment = payment_repo.create_payment(
        db,
        contract_id=contract_id,
        payment_type=PaymentType.DEPOSIT,
        amount=amount,
        provider_ref=provider_ref,
        platform_fee=fee,
        owner_payout=amount - fee,
    )
    contract_repo.update_contract(db, contract_id, deposit_payment_ref=provider_ref)
    logger.info("Deposit %s recorded for contract %s (%s)", provider_ref, contract_id, amount)
    return payment


def start_deposit_payment(
    db: Session, provider: PaymentProvider, contract_id: int, current_user: User
) -> PaymentModel:
    """Request the security deposit from the student through the processor."""
    contract = _get_contract_or_404(db, contract_id)
    ensure_allowed(can_pay_deposit(current_user, contract))

    if ContractStatus(contract.status) not in OPEN_STATUSES:
        raise InvalidStateError(
            f"Deposit cannot be paid on a {contract.status} contract"
        )
    if not contract.deposit_amount or contract.deposit_amount <= 0:
        raise DomainValidationError("No deposit is due for this contract")
    if payment_repo.get_succeeded_deposit(db, contract_id):
        raise ConflictError("The deposit for this contract has already been paid")

    # At most one open deposit intent per contract.
    latest = payment_repo.get_latest_deposit(db, contract_id)
    if latest and latest.payment_status == PaymentStatus.PENDING.value:
        logger.info("Reusing pending deposit %s for contract %s", latest.provider_ref, contract_id)
        return latest

    account = _require_ready_account(db, contract.owner_id)

    provider_ref = provider.create_deposit_intent(contract, account)
    return record_deposit_intent(db, contract_id, contract.deposit_amount, provider_ref)


def apply_payment_status_event(
    db: Session,
    payment_ref: str,
    new_status: PaymentStatus | str,
    failure_reason: str | None = None,
) -> PaymentModel:
    """
    Apply a processor status event to a payment record.

    Events arrive late, duplicated or out of order. A repeat of the current
    status is a no-op and a move the status policy does not allow (for
    instance failed after succeeded) is logged and ignored. A deposit may only
    succeed once per contract.

    Raises:
        PaymentReferenceNotFoundError: no payment with this reference
        ConflictError: another deposit of the same contract already succeeded
    """
    try:
        new_status = PaymentStatus(new_status)
    except ValueError as e:
        raise DomainValidationError(f"Unknown payment status: {new_status}") from e

    payment = payment_repo.get_payment_by_provider_ref_for_update(db, payment_ref)
    if not payment:
        raise PaymentReferenceNotFoundError(f"Payment {payment_ref} not found")

    current = PaymentStatus(payment.payment_status)
    if current == new_status:
        db.rollback()
        return payment
    if not can_apply_payment_status(current, new_status):
        db.rollback()
        logger.info(
            "Ignoring %s -> %s for payment %s (stale event)",
            current.value,
            new_status.value,
            payment_ref,
        )
        return payment

    if (
        new_status == PaymentStatus.SUCCEEDED
        and payment.payment_type == PaymentType.DEPOSIT.value
        and payment_repo.get_succeeded_deposit(db, payment.contract_id, exclude_id=payment.id)
    ):
        db.rollback()
        raise ConflictError("The deposit for this contract has already been paid")

    payment.payment_status = new_status.value
    if new_status == PaymentStatus.SUCCEEDED:
        payment.paid_at = utcnow()
        payment.failure_reason = None
    elif new_status == PaymentStatus.FAILED:
        payment.failure_reason = failure_reason or "Payment failed"
    db.commit()
    db.refresh(payment)

    logger.info("Payment %s moved %s -> %s", payment_ref, current.value, new_status.value)
    return payment


def record_subscription_invoice(
    db: Session,
    subscription_ref: str,
    invoice_ref: str,
    amount: Decimal,
    status: PaymentStatus | str,
    failure_reason: str | None = None,
) -> PaymentModel:
    """
    Record a monthly rent invoice, or apply its new status if it is already known.

    Raises:
        DomainValidationError: a new invoice with a non-positive amount (trial or fully discounted)
        NotFoundError: no contract is linked to the subscription
    """
    status = PaymentStatus(status)
    if payment_repo.get_payment_by_provider_ref(db, invoice_ref):
        return apply_payment_status_event(db, invoice_ref, status, failure_reason)

    amount = Decimal(amount)
    if amount <= 0:
        raise DomainValidationError(f"Invoice {invoice_ref} has no amount to collect")

    contract = contract_repo.get_contract_by_subscription_id(db, subscription_ref)
    if not contract:
        raise NotFoundError(f"No contract linked to subscription {subscription_ref}")

    fee = _platform_fee(amount)
    payment = payment_repo.create_payment(
        db,
        contract_id=contract.id,
        payment_type=PaymentType.MONTHLY_RENT,
        amount=amount,
        provider_ref=invoice_ref,
        payment_status=status,
        platform_fee=fee,
        owner_payout=amount - fee,
        failure_reason=failure_reason if status == PaymentStatus.FAILED else None,
        paid_at=utcnow() if status == PaymentStatus.SUCCEEDED else None,
    )
    logger.info(
        "Rent invoice %s (%s) recorded for contract %s", invoice_ref, status.value, contract.id
    )
    return payment


def detach_subscription(db: Session, provider: PaymentProvider, contract_id: int) -> ContractModel:
    """
    Cancel the contract's subscription at the processor and clear the link.

    A subscription the processor no longer knows counts as detached.
    ProviderUnavailableError propagates and leaves the link untouched.
    """
    contract = _get_contract_or_404(db, contract_id)
    subscription_ref = contract.stripe_subscription_id
    if subscription_ref is None:
        if contract.subscription_unlink_pending:
            contract = contract_repo.update_contract(db, contract_id, subscription_unlink_pending=False)
        return contract

    try:
        provider.cancel_subscription(subscription_ref)
    except PaymentReferenceNotFoundError:
        logger.info("Subscription %s already gone at the processor", subscription_ref)

    contract = contract_repo.update_contract(
        db, contract_id, stripe_subscription_id=None, subscription_unlink_pending=False
    )
    logger.info("Subscription %s detached from contract %s", subscription_ref, contract_id)
    return contract


def unlink_subscription_best_effort(
    db: Session, provider: PaymentProvider, contract: ContractModel
) -> bool:
    """
    Detach after a terminal transition. Never raises for processor failures.

    On failure the contract keeps its subscription ref and is flagged for
    ``reconcile_subscription_unlinks``.
    """
    try:
        detach_subscription(db, provider, contract.id)
        return True
    except (ProviderUnavailableError, DomainValidationError) as e:
        logger.error(
            "Could not cancel subscription %s for contract %s, flagged for reconciliation: %s",
            contract.stripe_subscription_id,
            contract.id,
            e,
        )
        contract_repo.update_contract(db, contract.id, subscription_unlink_pending=True)
        return False


def reconcile_subscription_unlinks(db: Session, provider: PaymentProvider) -> ReconcileResult:
    """Retry the processor unlink for every contract flagged after a failed detach."""
    resolved, still_pending = [], []
    for contract in contract_repo.get_contracts_pending_unlink(db):
        try:
            detach_subscription(db, provider, contract.id)
            resolved.append(contract.id)
        except (ProviderUnavailableError, DomainValidationError) as e:
            logger.warning("Unlink retry failed for contract %s: %s", contract.id, e)
            still_pending.append(contract.id)

    logger.info(
        "Unlink reconciliation: %d resolved, %d still pending", len(resolved), len(still_pending)
    )
    return ReconcileResult(resolved=resolved, still_pending=still_pending)


def clear_subscription_link(db: Session, subscription_ref: str) -> ContractModel | None:
    """Drop the link to a subscription the processor reports as deleted. The contract status is untouched."""
    contract = contract_repo.get_contract_by_subscription_id(db, subscription_ref)
    if not contract:
        logger.info("Deleted subscription %s is not linked to any contract", subscription_ref)
        return None

    contract = contract_repo.update_contract(
        db, contract.id, stripe_subscription_id=None, subscription_unlink_pending=False
    )
    logger.info("Subscription %s deleted at the processor; unlinked contract %s", subscription_ref, contract.id)
    return contract
