"""Payment processor capability.

The rest of the application only talks to ``PaymentProvider``. Failures come
back as one of three domain errors, whatever the processor's own error shape:

- ProviderUnavailableError: timeouts, connection errors, HTTP 429 / 5xx.
  Retryable; local state must not depend on the call having succeeded.
- PaymentReferenceNotFoundError: the processor does not know the reference.
- DomainValidationError: the processor rejected the request itself.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

import httpx

from app.core.config import settings
from app.db.models.contract import Contract as ContractModel
from app.db.models.owner_payment_account import OwnerPaymentAccount as AccountModel
from app.db.models.user import User as UserModel
from app.errors import (
    DomainValidationError,
    PaymentReferenceNotFoundError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Convert an amount in currency units to integer cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1")))


@dataclass(frozen=True)
class AccountState:
    onboarding_complete: bool
    payouts_enabled: bool
    charges_enabled: bool


def account_state_from_stripe(obj: dict) -> AccountState:
    """Onboarding counts as complete once details are submitted and charges are enabled."""
    charges_enabled = bool(obj.get("charges_enabled"))
    return AccountState(
        onboarding_complete=bool(obj.get("details_submitted")) and charges_enabled,
        payouts_enabled=bool(obj.get("payouts_enabled")),
        charges_enabled=charges_enabled,
    )


class PaymentProvider(ABC):
    @abstractmethod
    def create_subscription(self, contract: ContractModel, account: AccountModel) -> str:
        """Start recurring monthly rent for ``contract``, paid out to ``account``. Returns the subscription ref."""

    @abstractmethod
    def cancel_subscription(self, subscription_ref: str) -> None:
        """Stop a recurring rent subscription."""

    @abstractmethod
    def create_deposit_intent(self, contract: ContractModel, account: AccountModel) -> str:
        """Request the one-off security deposit. Returns the payment intent ref."""

    @abstractmethod
    def create_connected_account(self, user: UserModel) -> str:
        """Open a payout account for an owner. Returns the account ref."""

    @abstractmethod
    def create_onboarding_link(self, stripe_account_id: str, refresh_url: str, return_url: str) -> str:
        """Start (or resume) processor onboarding for a payout account. Returns the hosted URL."""

    @abstractmethod
    def retrieve_account(self, stripe_account_id: str) -> AccountState:
        """Current onboarding state of a payout account as the processor sees it."""


class StripePaymentProvider(PaymentProvider):
    """``PaymentProvider`` backed by Stripe's REST API."""

    def __init__(
        self,
        secret_key: str | None,
        api_base: str = "https://api.stripe.com/v1",
        timeout: float = 10.0,
        currency: str = "chf",
        commission_rate: Decimal = Decimal("0.04"),
        client: httpx.Client | None = None,
    ):
        self.secret_key = secret_key
        self.currency = currency
        self.commission_rate = commission_rate
        self._client = client or httpx.Client(
            base_url=api_base.rstrip("/"),
            timeout=timeout,
            auth=(secret_key or "", ""),
        )

    @classmethod
    def from_settings(cls) -> "StripePaymentProvider":
        return cls(
            secret_key=settings.stripe_secret_key,
            api_base=settings.stripe_api_base,
            timeout=settings.payment_provider_timeout_seconds,
            currency=settings.payment_currency,
            commission_rate=settings.platform_commission_rate,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, data: dict | None = None) -> dict:
        if not self.secret_key:
            raise ProviderUnavailableError("Payment provider is not configured")

        try:
            response = self._client.request(method, path, data=data)
        except httpx.TimeoutException as e:
            logger.warning("Stripe %s %s timed out: %s", method, path, e)
            raise ProviderUnavailableError("Payment provider timed out") from e
        except httpx.RequestError as e:
            logger.warning("Stripe %s %s failed: %s", method, path, e)
            raise ProviderUnavailableError("Payment provider unreachable") from e

        if response.status_code == 429 or response.status_code >= 500:
            logger.warning("Stripe %s %s returned %s", method, path, response.status_code)
            raise ProviderUnavailableError(
                f"Payment provider returned status {response.status_code}"
            )

        if response.status_code >= 400:
            error = _error_body(response)
            message = error.get("message") or f"Payment provider returned status {response.status_code}"
            if response.status_code == 404 or error.get("code") == "resource_missing":
                raise PaymentReferenceNotFoundError(message)
            raise DomainValidationError(message)

        return response.json()

    def create_subscription(self, contract: ContractModel, account: AccountModel) -> str:
        customer = self._request(
            "POST",
            "/customers",
            {
                "email": contract.student.email,
                "name": f"{contract.student.first_name} {contract.student.last_name}",
                "metadata[user_id]": str(contract.student_id),
                "metadata[contract_id]": str(contract.id),
            },
        )
        price = self._request(
            "POST",
            "/prices",
            {
                "unit_amount": to_minor_units(contract.monthly_rent + contract.charges),
                "currency": self.currency,
                "recurring[interval]": "month",
                "product_data[name]": f"Monthly rent - contract #{contract.id}",
                "product_data[metadata][contract_id]": str(contract.id),
            },
        )
        subscription = self._request(
            "POST",
            "/subscriptions",
            {
                "customer": customer["id"],
                "items[0][price]": price["id"],
                "payment_behavior": "default_incomplete",
                "application_fee_percent": str(self.commission_rate * 100),
                "transfer_data[destination]": account.stripe_account_id,
                "metadata[contract_id]": str(contract.id),
            },
        )
        return subscription["id"]

    def cancel_subscription(self, subscription_ref: str) -> None:
        self._request("DELETE", f"/subscriptions/{subscription_ref}")

    def create_deposit_intent(self, contract: ContractModel, account: AccountModel) -> str:
        amount = to_minor_units(contract.deposit_amount)
        intent = self._request(
            "POST",
            "/payment_intents",
            {
                "amount": amount,
                "currency": self.currency,
                "application_fee_amount": to_minor_units(
                    contract.deposit_amount * self.commission_rate
                ),
                "transfer_data[destination]": account.stripe_account_id,
                "metadata[contract_id]": str(contract.id),
                "metadata[payment_type]": "deposit",
            },
        )
        return intent["id"]

    def create_connected_account(self, user: UserModel) -> str:
        account = self._request(
            "POST",
            "/accounts",
            {
                "type": "express",
                "country": "CH",
                "email": user.email,
                "business_type": "individual",
                "capabilities[card_payments][requested]": "true",
                "capabilities[transfers][requested]": "true",
            },
        )
        return account["id"]

    def create_onboarding_link(self, stripe_account_id: str, refresh_url: str, return_url: str) -> str:
        link = self._request(
            "POST",
            "/account_links",
            {
                "account": stripe_account_id,
                "refresh_url": refresh_url,
                "return_url": return_url,
                "type": "account_onboarding",
            },
        )
        return link["url"]

    def retrieve_account(self, stripe_account_id: str) -> AccountState:
        return account_state_from_stripe(self._request("GET", f"/accounts/{stripe_account_id}"))


def _error_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"]
    return {}
