from datetime import datetime

from sqlalchemy.orm import Session

from app.db.models.user import User as UserModel
from app.errors import NotFoundError


def get_user_by_email(db: Session, email: str) -> UserModel | None:
    """Get a user by email."""
    return db.query(UserModel).filter(UserModel.email == email).first()


def get_user_by_id(db: Session, user_id: int) -> UserModel | None:
    """Get a user by ID."""
    return db.query(UserModel).filter(UserModel.id == user_id).first()


def create_user(
    db: Session,
    email: str,
    first_name: str,
    last_name: str,
    password_hash: str,
    role_id: int,
) -> UserModel:
    """Create a new user in the database. Pure data access - no business logic."""
    db_user = UserModel(
        email=email,
        first_name=first_name,
        last_name=last_name,
        password_hash=password_hash,
        role_id=role_id,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def set_kyc_verified(db: Session, user_id: int, verified: bool) -> UserModel:
    user = get_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")

    user.kyc_verified = verified
    db.commit()
    db.refresh(user)
    return user


def set_ban(
    db: Session,
    user_id: int,
    is_banned: bool,
    until: datetime | None = None,
    reason: str | None = None,
) -> UserModel:
    """Set or clear a user's ban. A None expiry with is_banned=True means indefinite."""
    user = get_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")

    user.is_banned = is_banned
    user.banned_until = until
    user.ban_reason = reason
    db.commit()
    db.refresh(user)
    return user


def set_mute(
    db: Session,
    user_id: int,
    is_muted: bool,
    until: datetime | None = None,
    reason: str | None = None,
) -> UserModel:
    """Set or clear a user's mute. A None expiry with is_muted=True means indefinite."""
    user = get_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")

    user.is_muted = is_muted
    user.muted_until = until
    user.mute_reason = reason
    db.commit()
    db.refresh(user)
    return user
