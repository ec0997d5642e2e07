from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_roles
from app.db.models.user import User
from app.schemas.user import BanRequest, ModerationStatus, MuteRequest
from app.services import user as user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/{user_id}/ban", response_model=ModerationStatus)
def ban_user(
    user_id: int,
    request: BanRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    """
    Ban a user. Omitting ``days`` bans indefinitely. Admins cannot be banned.
    """
    user = user_service.ban_user(db, user_id, current_user, request.reason, request.days)
    return ModerationStatus.model_validate(user)


@router.post("/{user_id}/unban", response_model=ModerationStatus)
def unban_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    return ModerationStatus.model_validate(user_service.unban_user(db, user_id, current_user))


@router.post("/{user_id}/mute", response_model=ModerationStatus)
def mute_user(
    user_id: int,
    request: MuteRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    """
    Mute a user. Omitting ``hours`` mutes indefinitely. Admins cannot be muted.
    """
    user = user_service.mute_user(db, user_id, current_user, request.reason, request.hours)
    return ModerationStatus.model_validate(user)


@router.post("/{user_id}/unmute", response_model=ModerationStatus)
def unmute_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    return ModerationStatus.model_validate(user_service.unmute_user(db, user_id, current_user))
