from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_payment_provider, require_roles
from app.db.models.user import User
from app.schemas.contract import Contract
from app.schemas.payment import (
    OnboardingLink,
    Payment,
    PaymentAccount,
    PaymentAccountStatus,
    PaymentSummary,
    ReconcileResult,
)
from app.services import payment as payment_service
from app.services import payment_account as account_service
from app.services.payment_provider import PaymentProvider

router = APIRouter(tags=["payments"])


@router.get("/contracts/{contract_id}/payment-status", response_model=PaymentSummary)
def get_payment_status(
    contract_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Derived payment state of a contract: subscription, deposit and owner readiness."""
    summary = payment_service.get_payment_summary_for_user(db, contract_id, current_user)
    return PaymentSummary.model_validate(summary)


@router.get("/contracts/{contract_id}/payments", response_model=list[Payment])
def list_contract_payments(
    contract_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    payments = payment_service.list_payments_for_user(db, contract_id, current_user)
    return [Payment.model_validate(p) for p in payments]


@router.post("/contracts/{contract_id}/subscription", response_model=Contract)
def start_subscription(
    contract_id: int,
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
    current_user: User = Depends(get_current_user),
):
    """
    Start the monthly rent subscription of an active contract.

    Fails with OWNER_SETUP_REQUIRED while the owner's payout account is not ready.
    """
    contract = payment_service.start_subscription(db, provider, contract_id, current_user)
    return Contract.model_validate(contract)


@router.post(
    "/contracts/{contract_id}/deposit",
    response_model=Payment,
    status_code=status.HTTP_201_CREATED,
)
def start_deposit_payment(
    contract_id: int,
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
    current_user: User = Depends(get_current_user),
):
    """Request the security deposit. Contract student or admin."""
    payment = payment_service.start_deposit_payment(db, provider, contract_id, current_user)
    return Payment.model_validate(payment)


@router.post("/payments/reconcile-unlinks", response_model=ReconcileResult)
def reconcile_unlinks(
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
    current_user: User = Depends(require_roles("admin")),
):
    """Retry processor unlinks that failed during cancel or complete. Admin only."""
    result = payment_service.reconcile_subscription_unlinks(db, provider)
    return ReconcileResult.model_validate(result)


@router.post(
    "/payment-accounts",
    response_model=PaymentAccount,
    status_code=status.HTTP_201_CREATED,
)
def create_payment_account(
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
    current_user: User = Depends(require_roles("owner")),
):
    account = account_service.create_owner_payment_account(db, provider, current_user)
    return PaymentAccount.model_validate(account)


@router.post("/payment-accounts/onboarding-link", response_model=OnboardingLink)
def create_onboarding_link(
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
    current_user: User = Depends(require_roles("owner")),
):
    """Link to the processor's hosted onboarding for the owner's payout account."""
    url = account_service.create_onboarding_link(db, provider, current_user)
    return OnboardingLink(url=url)


@router.get("/payment-accounts/me", response_model=PaymentAccountStatus)
def get_my_payment_account(
    refresh: bool = Query(False, description="Re-read onboarding state from the processor"),
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
    current_user: User = Depends(require_roles("owner")),
):
    if refresh:
        account = account_service.refresh_owner_payment_account(db, provider, current_user)
    else:
        account = account_service.get_owner_payment_account(db, current_user)
    return PaymentAccountStatus(
        has_account=account is not None,
        account=PaymentAccount.model_validate(account) if account else None,
    )
