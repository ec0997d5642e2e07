from collections.abc import Iterator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.db.models.user import User
from app.core.security import decode_token
from app.services.payment_provider import PaymentProvider, StripePaymentProvider

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_payment_provider() -> Iterator[PaymentProvider]:
    provider = StripePaymentProvider.from_settings()
    try:
        yield provider
    finally:
        provider.close()


def _credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Get the current authenticated user from JWT token."""
    payload = decode_token(token)
    if payload is None:
        raise _credentials_exception()

    # Only access tokens authenticate requests
    if payload.get("type") != "access":
        raise _credentials_exception()

    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        raise _credentials_exception()

    user = db.query(User).filter(User.id == int(subject)).first()
    if user is None:
        raise _credentials_exception("User not found")

    return user


def require_roles(*role_names: str):
    """
    Create a dependency that requires the current user to have one of the specified roles.

    Args:
        *role_names: Variable number of role name strings to allow

    Returns:
        A dependency function that checks if the user has one of the required roles

    Example:
        Depends(require_roles("admin"))
        Depends(require_roles("owner", "admin"))
    """
    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role.name not in role_names:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )
        return current_user

    return role_checker
