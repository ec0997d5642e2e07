from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import create_access_token
from app.repositories.user import get_user_by_email


# ============================================================================
# LOGIN TESTS
# ============================================================================


def test_login_success(client, db: Session, admin_user):
    """Test successful login returns access token and user info."""
    response = client.post(
        "/api/v1/auth/login",
        data={
            "username": settings.first_admin_email,
            "password": settings.first_admin_password,
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == settings.first_admin_email
    assert data["user"]["role"]["name"] == "admin"


def test_login_invalid_email(client, db: Session):
    """Test login with non-existent email."""
    response = client.post(
        "/api/v1/auth/login",
        data={
            "username": "nonexistent@example.com",
            "password": "Password123!",
        },
    )
    assert response.status_code == 401
    assert "Incorrect email or password" in response.json()["detail"]
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_login_wrong_password(client, db: Session, student_user):
    """Test login with wrong password."""
    response = client.post(
        "/api/v1/auth/login",
        data={
            "username": student_user.email,
            "password": "WrongPassword123!",
        },
    )
    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"


# ============================================================================
# REGISTRATION TESTS
# ============================================================================


def test_register_student(client, db: Session):
    """Test self-registration defaults to the student role."""
    response = client.post(
        "/api/v1/auth/register",
        json={
            "email": "newstudent@example.com",
            "first_name": "New",
            "last_name": "Student",
            "password": "NewPassword123!",
        },
    )
    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "newstudent@example.com"
    assert data["role"]["name"] == "student"
    assert data["kyc_verified"] is False
    assert "password_hash" not in data  # Password hash should not be exposed

    user = get_user_by_email(db, "newstudent@example.com")
    assert user is not None


def test_register_owner(client, db: Session):
    response = client.post(
        "/api/v1/auth/register",
        json={
            "email": "landlord@example.com",
            "first_name": "Land",
            "last_name": "Lord",
            "password": "OwnerPass123!",
            "role": "owner",
        },
    )
    assert response.status_code == 201
    assert response.json()["role"]["name"] == "owner"


def test_register_admin_not_allowed(client, db: Session):
    """Admin accounts cannot be self-registered."""
    response = client.post(
        "/api/v1/auth/register",
        json={
            "email": "sneaky@example.com",
            "first_name": "Sneaky",
            "last_name": "User",
            "password": "SneakyPass123!",
            "role": "admin",
        },
    )
    assert response.status_code == 422


def test_register_email_already_exists(client, db: Session, student_user):
    """Test registration with duplicate email fails."""
    response = client.post(
        "/api/v1/auth/register",
        json={
            "email": student_user.email,
            "first_name": "Duplicate",
            "last_name": "User",
            "password": "NewPassword123!",
        },
    )
    assert response.status_code == 409
    assert "Email already registered" in response.json()["detail"]


def test_register_password_too_short(client, db: Session):
    response = client.post(
        "/api/v1/auth/register",
        json={
            "email": "short@example.com",
            "first_name": "Short",
            "last_name": "Password",
            "password": "Short1!",  # Only 7 chars, needs 8+
        },
    )
    # Pydantic validates min_length at request parsing level (422)
    assert response.status_code == 422


def test_register_password_rules(client, db: Session):
    """Each password rule produces its own message."""
    cases = {
        "password123!": "uppercase",
        "PASSWORD123!": "lowercase",
        "Password!": "number",
        "Password123": "symbol",
    }
    for password, expected in cases.items():
        response = client.post(
            "/api/v1/auth/register",
            json={
                "email": "rules@example.com",
                "first_name": "Rules",
                "last_name": "Test",
                "password": password,
            },
        )
        assert response.status_code == 400
        assert expected in response.json()["detail"]


def test_register_invalid_email(client, db: Session):
    response = client.post(
        "/api/v1/auth/register",
        json={
            "email": "not-an-email",
            "first_name": "Bad",
            "last_name": "Email",
            "password": "NewPassword123!",
        },
    )
    assert response.status_code == 422


# ============================================================================
# GET CURRENT USER TESTS
# ============================================================================


def test_get_current_user_success(client, db: Session, owner_user, owner_token: str):
    """Test getting current user info with valid token."""
    response = client.get(
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {owner_token}"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == owner_user.email
    assert data["id"] == owner_user.id
    assert data["kyc_verified"] is True
    assert data["is_banned"] is False


def test_get_current_user_without_token(client, db: Session):
    """Test getting current user without token fails."""
    response = client.get("/api/v1/auth/me")
    assert response.status_code == 401  # Missing authentication credentials


def test_get_current_user_invalid_token(client, db: Session):
    """Test getting current user with invalid token fails."""
    response = client.get(
        "/api/v1/auth/me",
        headers={"Authorization": "Bearer invalid_token"},
    )
    assert response.status_code == 401
    assert "Could not validate credentials" in response.json()["detail"]


def test_get_current_user_non_numeric_subject(client, db: Session):
    token = create_access_token(data={"sub": "someone@example.com"})
    response = client.get(
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401


def test_get_current_user_deleted_user(client, db: Session):
    token = create_access_token(data={"sub": "99999"})
    response = client.get(
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "User not found"
