from decimal import Decimal

from sqlalchemy.orm import Session

import app.repositories.property as property_repo
from app.db.models.property import Property as PropertyModel
from app.db.models.user import User
from app.domain.access import ROLE_OWNER, ensure_allowed, can_send_message
from app.errors import DomainValidationError, ForbiddenError, NotFoundError


def create_property(
    db: Session,
    current_user: User,
    title: str,
    monthly_rent: Decimal,
    charges: Decimal = Decimal("0"),
    city_name: str | None = None,
    address: str | None = None,
) -> PropertyModel:
    """
    List a property for rent on behalf of its owner.

    Raises:
        ForbiddenError: If the caller is not an owner, or is banned/muted
        DomainValidationError: If rent is not positive or charges are negative
    """
    ensure_allowed(can_send_message(current_user))
    if current_user.role.name != ROLE_OWNER:
        raise ForbiddenError("Only owners can list properties", reason="WRONG_ROLE")
    if monthly_rent <= 0:
        raise DomainValidationError("monthly_rent must be greater than 0")
    if charges < 0:
        raise DomainValidationError("charges cannot be negative")

    return property_repo.create_property(
        db,
        owner_id=current_user.id,
        title=title,
        monthly_rent=monthly_rent,
        charges=charges,
        city_name=city_name,
        address=address,
    )


def get_property(db: Session, property_id: int) -> PropertyModel:
    db_property = property_repo.get_property_by_id(db, property_id)
    if not db_property:
        raise NotFoundError("Property not found")
    return db_property


def list_properties(
    db: Session,
    page: int = 1,
    page_size: int = 100,
    owner_id: int | None = None,
    status: str | None = None,
) -> tuple[list[PropertyModel], int]:
    return property_repo.get_all_properties_paginated(
        db, page=page, page_size=page_size, owner_id=owner_id, status=status
    )
