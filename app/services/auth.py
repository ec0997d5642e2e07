"""Auth service: login and self-registration."""

import logging

from sqlalchemy.orm import Session

import app.repositories.role as role_repo
import app.repositories.user as user_repo
from app.core.security import (
    create_access_token,
    get_password_hash,
    validate_password,
    verify_password,
)
from app.db.models.user import User as UserModel
from app.errors import ConflictError, DomainValidationError, NotFoundError, UnauthorizedError
from app.schemas.user import Token, User, UserRegister

logger = logging.getLogger(__name__)


def login(db: Session, email: str, password: str) -> Token:
    """
    Authenticate user by email and password, return JWT access token.

    Raises:
        UnauthorizedError: If email not found or password incorrect.
    """
    user = user_repo.get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        raise UnauthorizedError("Incorrect email or password")

    access_token = create_access_token(data={"sub": str(user.id)})
    return Token(
        access_token=access_token,
        token_type="bearer",
        user=User.model_validate(user),
    )


def register(db: Session, user_data: UserRegister) -> UserModel:
    """
    Self-register a student or owner account.

    - Validates email uniqueness
    - Validates password requirements
    - Admin accounts are seeded, never self-registered
    """
    if user_repo.get_user_by_email(db, user_data.email):
        raise ConflictError("Email already registered")

    is_valid, error_message = validate_password(user_data.password)
    if not is_valid:
        raise DomainValidationError(error_message)

    role = role_repo.get_role_by_name(db, user_data.role)
    if not role:
        raise NotFoundError(f"Role '{user_data.role}' not found")

    user = user_repo.create_user(
        db,
        email=user_data.email,
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        password_hash=get_password_hash(user_data.password),
        role_id=role.id,
    )
    logger.info("Registered %s account %s", role.name, user.id)
    return user
