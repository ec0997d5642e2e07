from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from app.domain.access import (
    AccessDecision,
    DenyReason,
    can_cancel,
    can_complete,
    can_create_contract,
    can_edit_terms,
    can_manage_payments,
    can_pay_deposit,
    can_send_message,
    can_sign,
    can_view,
    ensure_allowed,
    is_banned,
    is_muted,
)
from app.domain.contract_lifecycle import SignatoryRole
from app.errors import ForbiddenError, UnauthorizedError

NOW = datetime(2026, 10, 1, 12, 0, 0)


def make_user(user_id, role="student", kyc_verified=False, **overrides):
    fields = dict(
        id=user_id,
        role=SimpleNamespace(name=role),
        kyc_verified=kyc_verified,
        is_banned=False,
        banned_until=None,
        is_muted=False,
        muted_until=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.fixture
def owner():
    return make_user(1, role="owner", kyc_verified=True)


@pytest.fixture
def student():
    return make_user(2, role="student")


@pytest.fixture
def stranger():
    return make_user(3, role="student")


@pytest.fixture
def admin():
    return make_user(99, role="admin", kyc_verified=True)


@pytest.fixture
def contract(owner, student):
    return SimpleNamespace(id=10, owner_id=owner.id, student_id=student.id)


# ============================================================================
# RESTRICTIONS
# ============================================================================


def test_indefinite_ban_is_effective():
    user = make_user(1, is_banned=True, banned_until=None)
    assert is_banned(user, NOW)


def test_future_ban_is_effective_and_past_ban_is_not():
    assert is_banned(make_user(1, is_banned=True, banned_until=NOW + timedelta(days=1)), NOW)
    assert not is_banned(make_user(1, is_banned=True, banned_until=NOW - timedelta(seconds=1)), NOW)


def test_expiry_without_flag_is_not_a_restriction():
    assert not is_muted(make_user(1, is_muted=False, muted_until=NOW + timedelta(days=1)), NOW)


def test_banned_user_is_denied_every_mutation(owner, contract):
    banned_owner = make_user(owner.id, role="owner", kyc_verified=True, is_banned=True)
    for decision in (
        can_create_contract(banned_owner, NOW),
        can_sign(banned_owner, contract, SignatoryRole.OWNER, NOW),
        can_edit_terms(banned_owner, contract, NOW),
        can_cancel(banned_owner, contract, NOW),
        can_complete(banned_owner, contract, NOW),
        can_manage_payments(banned_owner, contract, NOW),
        can_send_message(banned_owner, NOW),
    ):
        assert not decision
        assert decision.reason == DenyReason.BANNED


def test_muted_student_cannot_sign(student, contract):
    muted = make_user(student.id, is_muted=True, muted_until=NOW + timedelta(hours=2))
    decision = can_sign(muted, contract, SignatoryRole.STUDENT, NOW)
    assert decision.reason == DenyReason.MUTED


def test_expired_mute_does_not_deny(student, contract):
    was_muted = make_user(student.id, is_muted=True, muted_until=NOW - timedelta(hours=1))
    assert can_sign(was_muted, contract, SignatoryRole.STUDENT, NOW)


def test_banned_party_can_still_view(student, contract):
    banned = make_user(student.id, is_banned=True)
    assert can_view(banned, contract)


# ============================================================================
# ROLE AND PARTY CHECKS
# ============================================================================


def test_only_kyc_verified_owner_can_create(owner, student):
    assert can_create_contract(owner, NOW)
    assert can_create_contract(student, NOW).reason == DenyReason.WRONG_ROLE
    unverified = make_user(5, role="owner", kyc_verified=False)
    assert can_create_contract(unverified, NOW).reason == DenyReason.KYC_REQUIRED


def test_sign_requires_matching_party(owner, student, stranger, contract):
    assert can_sign(owner, contract, SignatoryRole.OWNER, NOW)
    assert can_sign(student, contract, SignatoryRole.STUDENT, NOW)
    assert can_sign(student, contract, SignatoryRole.OWNER, NOW).reason == DenyReason.WRONG_ROLE
    assert can_sign(stranger, contract, SignatoryRole.STUDENT, NOW).reason == DenyReason.NOT_A_PARTY


def test_admin_cannot_sign_for_a_party(admin, contract):
    assert can_sign(admin, contract, SignatoryRole.OWNER, NOW).reason == DenyReason.NOT_A_PARTY


def test_only_contract_owner_edits_terms(owner, student, admin, contract):
    assert can_edit_terms(owner, contract, NOW)
    assert can_edit_terms(student, contract, NOW).reason == DenyReason.NOT_CONTRACT_OWNER
    assert can_edit_terms(admin, contract, NOW).reason == DenyReason.NOT_CONTRACT_OWNER


def test_cancel_allowed_for_parties_and_admin(owner, student, stranger, admin, contract):
    assert can_cancel(owner, contract, NOW)
    assert can_cancel(student, contract, NOW)
    assert can_cancel(admin, contract, NOW)
    assert can_cancel(stranger, contract, NOW).reason == DenyReason.NOT_A_PARTY


def test_complete_allowed_for_owner_and_admin(owner, student, admin, contract):
    assert can_complete(owner, contract, NOW)
    assert can_complete(admin, contract, NOW)
    assert can_complete(student, contract, NOW).reason == DenyReason.NOT_CONTRACT_OWNER


def test_deposit_paid_by_student(owner, student, stranger, contract):
    assert can_pay_deposit(student, contract, NOW)
    assert can_pay_deposit(owner, contract, NOW).reason == DenyReason.WRONG_ROLE
    assert can_pay_deposit(stranger, contract, NOW).reason == DenyReason.NOT_A_PARTY


def test_anonymous_caller_is_unauthenticated(contract):
    assert can_view(None, contract).reason == DenyReason.UNAUTHENTICATED
    assert can_cancel(None, contract, NOW).reason == DenyReason.UNAUTHENTICATED


# ============================================================================
# ensure_allowed
# ============================================================================


def test_ensure_allowed_passes_on_allow():
    ensure_allowed(AccessDecision.allow())


def test_ensure_allowed_raises_unauthorized():
    with pytest.raises(UnauthorizedError):
        ensure_allowed(AccessDecision.deny(DenyReason.UNAUTHENTICATED))


def test_ensure_allowed_carries_reason_code():
    with pytest.raises(ForbiddenError) as exc_info:
        ensure_allowed(AccessDecision.deny(DenyReason.KYC_REQUIRED))
    assert exc_info.value.reason == "KYC_REQUIRED"
