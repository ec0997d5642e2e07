"""Owner payout accounts at the payment processor."""

import logging

from sqlalchemy.orm import Session

import app.repositories.payment_account as account_repo
from app.core.config import settings
from app.db.models.owner_payment_account import OwnerPaymentAccount as AccountModel
from app.db.models.user import User
from app.domain.access import ROLE_OWNER
from app.errors import DomainValidationError, ForbiddenError, NotFoundError
from app.services.payment_provider import PaymentProvider

logger = logging.getLogger(__name__)


def create_owner_payment_account(
    db: Session, provider: PaymentProvider, current_user: User
) -> AccountModel:
    """
    Open a payout account for an owner, or return the one they already have.

    Onboarding starts incomplete; the processor reports progress through
    ``account.updated`` callbacks.
    """
    if current_user.role.name != ROLE_OWNER:
        raise ForbiddenError("Only owners can create a payment account", reason="WRONG_ROLE")

    existing = account_repo.get_account_by_user_id(db, current_user.id)
    if existing:
        return existing

    stripe_account_id = provider.create_connected_account(current_user)
    account = account_repo.create_account(db, current_user.id, stripe_account_id)
    logger.info("Payment account %s created for owner %s", stripe_account_id, current_user.id)
    return account


def get_owner_payment_account(db: Session, current_user: User) -> AccountModel | None:
    return account_repo.get_account_by_user_id(db, current_user.id)


def refresh_owner_payment_account(
    db: Session, provider: PaymentProvider, current_user: User
) -> AccountModel | None:
    """Re-read the owner's onboarding state from the processor and store it."""
    account = account_repo.get_account_by_user_id(db, current_user.id)
    if account is None:
        return None

    state = provider.retrieve_account(account.stripe_account_id)
    return update_owner_account_status(
        db,
        stripe_account_id=account.stripe_account_id,
        onboarding_complete=state.onboarding_complete,
        payouts_enabled=state.payouts_enabled,
        charges_enabled=state.charges_enabled,
    )


def create_onboarding_link(db: Session, provider: PaymentProvider, current_user: User) -> str:
    """
    Hosted processor page where the owner completes payout onboarding.

    The processor sends the owner back to the owner dashboard of ``FRONTEND_URL``.

    Raises:
        ForbiddenError: caller is not an owner
        NotFoundError: the owner has no payout account yet
        DomainValidationError: ``FRONTEND_URL`` is not configured
    """
    if current_user.role.name != ROLE_OWNER:
        raise ForbiddenError("Only owners can onboard a payment account", reason="WRONG_ROLE")

    account = account_repo.get_account_by_user_id(db, current_user.id)
    if not account:
        raise NotFoundError("No payment account found; create one first")
    if not settings.frontend_url:
        raise DomainValidationError("FRONTEND_URL is not configured")

    dashboard = f"{settings.frontend_url.rstrip('/')}/dashboard/owner"
    url = provider.create_onboarding_link(
        account.stripe_account_id,
        refresh_url=f"{dashboard}?stripe=refresh",
        return_url=f"{dashboard}?stripe=success",
    )
    logger.info("Onboarding link issued for payment account %s", account.stripe_account_id)
    return url


def update_owner_account_status(
    db: Session,
    stripe_account_id: str,
    onboarding_complete: bool,
    payouts_enabled: bool,
    charges_enabled: bool,
) -> AccountModel:
    account = account_repo.get_account_by_stripe_id(db, stripe_account_id)
    if not account:
        raise NotFoundError(f"Payment account {stripe_account_id} not found")

    account = account_repo.update_account_status(
        db,
        account,
        onboarding_complete=onboarding_complete,
        payouts_enabled=payouts_enabled,
        charges_enabled=charges_enabled,
    )
    logger.info(
        "Payment account %s updated: onboarding_complete=%s payouts_enabled=%s",
        stripe_account_id,
        onboarding_complete,
        payouts_enabled,
    )
    return account
