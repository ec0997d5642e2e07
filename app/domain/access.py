"""Access control gate for contract and payment operations.

Pure predicates: they look only at the caller and the contract they are
given and never touch the database. Each returns an ``AccessDecision``
whose reason code the API layer turns into a 401 or 403.

Semantics (intentionally centralized):
- An effective ban or mute denies every mutating action, whatever the role.
- A ban or mute is effective when its flag is set and its expiry is either
  unset (indefinite) or still in the future.
- Viewing is not mutating: banned parties can still read their contracts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from app.core.clock import utcnow
from app.domain.contract_lifecycle import SignatoryRole
from app.errors import ForbiddenError, UnauthorizedError

ROLE_STUDENT = "student"
ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"


class DenyReason(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    BANNED = "BANNED"
    MUTED = "MUTED"
    WRONG_ROLE = "WRONG_ROLE"
    NOT_A_PARTY = "NOT_A_PARTY"
    NOT_CONTRACT_OWNER = "NOT_CONTRACT_OWNER"
    KYC_REQUIRED = "KYC_REQUIRED"


_DENY_MESSAGES = {
    DenyReason.UNAUTHENTICATED: "Authentication required",
    DenyReason.BANNED: "Your account is banned",
    DenyReason.MUTED: "Your account is muted",
    DenyReason.WRONG_ROLE: "Not enough permissions",
    DenyReason.NOT_A_PARTY: "You are not a party to this contract",
    DenyReason.NOT_CONTRACT_OWNER: "Only the contract owner can perform this action",
    DenyReason.KYC_REQUIRED: "Identity verification (KYC) is required",
}


@dataclass(frozen=True, slots=True)
class AccessDecision:
    allowed: bool
    reason: DenyReason | None = None

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls) -> AccessDecision:
        return cls(True)

    @classmethod
    def deny(cls, reason: DenyReason) -> AccessDecision:
        return cls(False, reason)


def _role_name(user: Any) -> str | None:
    role = getattr(user, "role", None)
    return getattr(role, "name", None)


def _restriction_active(flag: bool | None, until: datetime | None, now: datetime) -> bool:
    if not flag:
        return False
    return until is None or until > now


def is_banned(user: Any, now: datetime | None = None) -> bool:
    return _restriction_active(user.is_banned, user.banned_until, now or utcnow())


def is_muted(user: Any, now: datetime | None = None) -> bool:
    return _restriction_active(user.is_muted, user.muted_until, now or utcnow())


def _mutation_precheck(user: Any, now: datetime | None) -> AccessDecision | None:
    """Checks shared by every mutating predicate. Returns a deny, or None to continue."""
    if user is None:
        return AccessDecision.deny(DenyReason.UNAUTHENTICATED)
    now = now or utcnow()
    if is_banned(user, now):
        return AccessDecision.deny(DenyReason.BANNED)
    if is_muted(user, now):
        return AccessDecision.deny(DenyReason.MUTED)
    return None


def _is_party(user: Any, contract: Any) -> bool:
    return user.id in (contract.owner_id, contract.student_id)


def can_create_contract(user: Any, now: datetime | None = None) -> AccessDecision:
    denied = _mutation_precheck(user, now)
    if denied is not None:
        return denied
    if _role_name(user) != ROLE_OWNER:
        return AccessDecision.deny(DenyReason.WRONG_ROLE)
    if not user.kyc_verified:
        return AccessDecision.deny(DenyReason.KYC_REQUIRED)
    return AccessDecision.allow()


def can_sign(
    user: Any, contract: Any, role: SignatoryRole, now: datetime | None = None
) -> AccessDecision:
    denied = _mutation_precheck(user, now)
    if denied is not None:
        return denied
    expected_id = contract.owner_id if SignatoryRole(role) == SignatoryRole.OWNER else contract.student_id
    if user.id != expected_id:
        if _is_party(user, contract):
            return AccessDecision.deny(DenyReason.WRONG_ROLE)
        return AccessDecision.deny(DenyReason.NOT_A_PARTY)
    return AccessDecision.allow()


def can_edit_terms(user: Any, contract: Any, now: datetime | None = None) -> AccessDecision:
    denied = _mutation_precheck(user, now)
    if denied is not None:
        return denied
    if user.id != contract.owner_id:
        return AccessDecision.deny(DenyReason.NOT_CONTRACT_OWNER)
    return AccessDecision.allow()


def can_cancel(user: Any, contract: Any, now: datetime | None = None) -> AccessDecision:
    denied = _mutation_precheck(user, now)
    if denied is not None:
        return denied
    if _role_name(user) == ROLE_ADMIN or _is_party(user, contract):
        return AccessDecision.allow()
    return AccessDecision.deny(DenyReason.NOT_A_PARTY)


def can_complete(user: Any, contract: Any, now: datetime | None = None) -> AccessDecision:
    denied = _mutation_precheck(user, now)
    if denied is not None:
        return denied
    if _role_name(user) == ROLE_ADMIN or user.id == contract.owner_id:
        return AccessDecision.allow()
    return AccessDecision.deny(DenyReason.NOT_CONTRACT_OWNER)


def can_manage_payments(user: Any, contract: Any, now: datetime | None = None) -> AccessDecision:
    return can_cancel(user, contract, now)


def can_pay_deposit(user: Any, contract: Any, now: datetime | None = None) -> AccessDecision:
    denied = _mutation_precheck(user, now)
    if denied is not None:
        return denied
    if _role_name(user) == ROLE_ADMIN or user.id == contract.student_id:
        return AccessDecision.allow()
    if _is_party(user, contract):
        return AccessDecision.deny(DenyReason.WRONG_ROLE)
    return AccessDecision.deny(DenyReason.NOT_A_PARTY)


def can_view(user: Any, contract: Any) -> AccessDecision:
    if user is None:
        return AccessDecision.deny(DenyReason.UNAUTHENTICATED)
    if _role_name(user) == ROLE_ADMIN or _is_party(user, contract):
        return AccessDecision.allow()
    return AccessDecision.deny(DenyReason.NOT_A_PARTY)


def can_send_message(user: Any, now: datetime | None = None) -> AccessDecision:
    denied = _mutation_precheck(user, now)
    if denied is not None:
        return denied
    return AccessDecision.allow()


def ensure_allowed(decision: AccessDecision) -> None:
    """Raise the matching domain error when ``decision`` is a deny."""
    if decision.allowed:
        return
    message = _DENY_MESSAGES[decision.reason]
    if decision.reason == DenyReason.UNAUTHENTICATED:
        raise UnauthorizedError(message)
    raise ForbiddenError(message, reason=decision.reason.value)
