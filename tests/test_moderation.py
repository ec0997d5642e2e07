from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

import app.repositories.user as user_repo
from app.core.clock import utcnow
from app.errors import DomainValidationError
from app.services import user as user_service


def test_ban_user(client, student_user, admin_token):
    response = client.post(
        f"/api/v1/users/{student_user.id}/ban",
        json={"reason": "Fraudulent listing", "days": 7},
        headers={"Authorization": f"Bearer {admin_token}"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["is_banned"] is True
    assert data["banned_until"] is not None
    assert data["ban_reason"] == "Fraudulent listing"


def test_indefinite_mute(client, student_user, admin_token):
    response = client.post(
        f"/api/v1/users/{student_user.id}/mute",
        json={"reason": "Spam"},
        headers={"Authorization": f"Bearer {admin_token}"},
    )
    assert response.status_code == 200
    assert response.json()["is_muted"] is True
    assert response.json()["muted_until"] is None


def test_admin_cannot_be_banned(client, admin_user, admin_token):
    response = client.post(
        f"/api/v1/users/{admin_user.id}/ban",
        json={"reason": "Oops"},
        headers={"Authorization": f"Bearer {admin_token}"},
    )
    assert response.status_code == 403


def test_only_admins_moderate(client, student_user, owner_token):
    response = client.post(
        f"/api/v1/users/{student_user.id}/ban",
        json={"reason": "Rude"},
        headers={"Authorization": f"Bearer {owner_token}"},
    )
    assert response.status_code == 403


def test_ban_requires_reason(db: Session, student_user, admin_user):
    with pytest.raises(DomainValidationError):
        user_service.ban_user(db, student_user.id, admin_user, "   ")


def test_unknown_user(client, admin_token):
    response = client.post(
        "/api/v1/users/9999/unban",
        headers={"Authorization": f"Bearer {admin_token}"},
    )
    assert response.status_code == 404


def test_banned_student_cannot_sign(client, db: Session, pending_contract, student_user, student_token, admin_user, signature):
    user_service.ban_user(db, student_user.id, admin_user, "Chargeback abuse")

    response = client.post(
        f"/api/v1/contracts/{pending_contract.id}/sign",
        json={"role": "student", "signature": signature},
        headers={"Authorization": f"Bearer {student_token}"},
    )
    assert response.status_code == 403
    assert response.json()["code"] == "BANNED"


def test_muted_owner_cannot_cancel(client, db: Session, pending_contract, owner_user, owner_token, admin_user):
    user_service.mute_user(db, owner_user.id, admin_user, "Harassment", hours=24)

    response = client.post(
        f"/api/v1/contracts/{pending_contract.id}/cancel",
        json={"reason": "Changed my mind"},
        headers={"Authorization": f"Bearer {owner_token}"},
    )
    assert response.status_code == 403
    assert response.json()["code"] == "MUTED"


def test_banned_party_can_still_view(client, db: Session, pending_contract, student_user, student_token, admin_user):
    user_service.ban_user(db, student_user.id, admin_user, "Chargeback abuse")
    response = client.get(
        f"/api/v1/contracts/{pending_contract.id}",
        headers={"Authorization": f"Bearer {student_token}"},
    )
    assert response.status_code == 200


def test_expired_ban_is_not_enforced(client, db: Session, pending_contract, student_user, student_token, signature):
    user_repo.set_ban(db, student_user.id, True, until=utcnow() - timedelta(days=1), reason="Old")

    response = client.post(
        f"/api/v1/contracts/{pending_contract.id}/sign",
        json={"role": "student", "signature": signature},
        headers={"Authorization": f"Bearer {student_token}"},
    )
    assert response.status_code == 200


def test_unban_restores_access(client, db: Session, pending_contract, student_user, student_token, admin_user, admin_token, signature):
    user_service.ban_user(db, student_user.id, admin_user, "Mistake")

    response = client.post(
        f"/api/v1/users/{student_user.id}/unban",
        headers={"Authorization": f"Bearer {admin_token}"},
    )
    assert response.json()["is_banned"] is False

    response = client.post(
        f"/api/v1/contracts/{pending_contract.id}/sign",
        json={"role": "student", "signature": signature},
        headers={"Authorization": f"Bearer {student_token}"},
    )
    assert response.status_code == 200
