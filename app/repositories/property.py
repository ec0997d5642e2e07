from decimal import Decimal

from sqlalchemy.orm import Session

from app.db.models.property import Property as PropertyModel
from app.errors import NotFoundError


def get_property_by_id(db: Session, property_id: int) -> PropertyModel | None:
    """Get a property by ID."""
    return db.query(PropertyModel).filter(PropertyModel.id == property_id).first()


def get_all_properties_paginated(
    db: Session,
    page: int = 1,
    page_size: int = 100,
    owner_id: int | None = None,
    status: str | None = None,
) -> tuple[list[PropertyModel], int]:
    query = db.query(PropertyModel)
    if owner_id is not None:
        query = query.filter(PropertyModel.owner_id == owner_id)
    if status is not None:
        query = query.filter(PropertyModel.status == status)

    total = query.count()
    skip = (page - 1) * page_size
    properties = query.order_by(PropertyModel.id).offset(skip).limit(page_size).all()
    return properties, total


def create_property(
    db: Session,
    owner_id: int,
    title: str,
    monthly_rent: Decimal,
    charges: Decimal = Decimal("0"),
    city_name: str | None = None,
    address: str | None = None,
) -> PropertyModel:
    """Create a new property in the database. Pure data access - no business logic."""
    db_property = PropertyModel(
        owner_id=owner_id,
        title=title,
        monthly_rent=monthly_rent,
        charges=charges,
        city_name=city_name,
        address=address,
        status="available",
    )
    db.add(db_property)
    db.commit()
    db.refresh(db_property)
    return db_property


def set_property_status(db: Session, property_id: int, status: str) -> PropertyModel:
    """Update a property's availability status."""
    db_property = get_property_by_id(db, property_id)
    if not db_property:
        raise NotFoundError("Property not found")

    db_property.status = status
    db.commit()
    db.refresh(db_property)
    return db_property
