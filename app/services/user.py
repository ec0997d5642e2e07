import logging
from datetime import timedelta

from sqlalchemy.orm import Session

import app.repositories.user as user_repo
from app.core.clock import utcnow
from app.db.models.user import User as UserModel
from app.domain.access import ROLE_ADMIN
from app.errors import DomainValidationError, ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)


def _get_moderatable_user(db: Session, user_id: int) -> UserModel:
    """
    Load a user that moderation actions may target.

    Raises:
        NotFoundError: If user doesn't exist
        ForbiddenError: If the target is an admin
    """
    user = user_repo.get_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")
    if user.role.name == ROLE_ADMIN:
        raise ForbiddenError("Admin accounts cannot be moderated")
    return user


def _require_reason(reason: str | None) -> str:
    if not reason or not reason.strip():
        raise DomainValidationError("A reason is required")
    return reason.strip()


def ban_user(
    db: Session, user_id: int, admin: UserModel, reason: str, days: int | None = None
) -> UserModel:
    """Ban a user for ``days`` days, or indefinitely when ``days`` is omitted."""
    reason = _require_reason(reason)
    _get_moderatable_user(db, user_id)

    until = utcnow() + timedelta(days=days) if days else None
    user = user_repo.set_ban(db, user_id, True, until=until, reason=reason)
    logger.info("User %s banned by admin %s until %s", user_id, admin.id, until or "further notice")
    return user


def unban_user(db: Session, user_id: int, admin: UserModel) -> UserModel:
    _get_moderatable_user(db, user_id)
    user = user_repo.set_ban(db, user_id, False)
    logger.info("User %s unbanned by admin %s", user_id, admin.id)
    return user


def mute_user(
    db: Session, user_id: int, admin: UserModel, reason: str, hours: int | None = None
) -> UserModel:
    """Mute a user for ``hours`` hours, or indefinitely when ``hours`` is omitted."""
    reason = _require_reason(reason)
    _get_moderatable_user(db, user_id)

    until = utcnow() + timedelta(hours=hours) if hours else None
    user = user_repo.set_mute(db, user_id, True, until=until, reason=reason)
    logger.info("User %s muted by admin %s until %s", user_id, admin.id, until or "further notice")
    return user


def unmute_user(db: Session, user_id: int, admin: UserModel) -> UserModel:
    _get_moderatable_user(db, user_id)
    user = user_repo.set_mute(db, user_id, False)
    logger.info("User %s unmuted by admin %s", user_id, admin.id)
    return user
