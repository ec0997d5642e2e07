from sqlalchemy.orm import Session

from app.db.models.owner_payment_account import OwnerPaymentAccount as AccountModel


def get_account_by_user_id(db: Session, user_id: int) -> AccountModel | None:
    return db.query(AccountModel).filter(AccountModel.user_id == user_id).first()


def get_account_by_stripe_id(db: Session, stripe_account_id: str) -> AccountModel | None:
    return (
        db.query(AccountModel)
        .filter(AccountModel.stripe_account_id == stripe_account_id)
        .first()
    )


def get_ready_account_for_owner(db: Session, owner_id: int) -> AccountModel | None:
    """Get the owner's payout account only if processor onboarding is complete."""
    return (
        db.query(AccountModel)
        .filter(
            AccountModel.user_id == owner_id,
            AccountModel.onboarding_complete.is_(True),
        )
        .first()
    )


def create_account(db: Session, user_id: int, stripe_account_id: str) -> AccountModel:
    """Create a payout account record. Pure data access - no business logic."""
    account = AccountModel(
        user_id=user_id,
        stripe_account_id=stripe_account_id,
        onboarding_complete=False,
        payouts_enabled=False,
        charges_enabled=False,
    )
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


def update_account_status(
    db: Session,
    account: AccountModel,
    onboarding_complete: bool,
    payouts_enabled: bool,
    charges_enabled: bool,
) -> AccountModel:
    account.onboarding_complete = onboarding_complete
    account.payouts_enabled = payouts_enabled
    account.charges_enabled = charges_enabled
    db.commit()
    db.refresh(account)
    return account
