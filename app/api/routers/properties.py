from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.db.models.user import User
from app.schemas.pagination import PaginatedResponse
from app.schemas.property import Property, PropertyCreate
from app.services import property as property_service

router = APIRouter(prefix="/properties", tags=["properties"])


@router.post("", response_model=Property, status_code=status.HTTP_201_CREATED)
def create_new_property(
    property_data: PropertyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("owner")),
):
    """
    List a new property for rent. Only owners can create properties.
    """
    db_property = property_service.create_property(
        db,
        current_user,
        title=property_data.title,
        monthly_rent=property_data.monthly_rent,
        charges=property_data.charges,
        city_name=property_data.city_name,
        address=property_data.address,
    )
    return Property.model_validate(db_property)


@router.get("", response_model=PaginatedResponse[Property])
def get_all_properties(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(100, ge=1, le=1000, description="Number of items per page"),
    owner_id: int | None = Query(None, description="Filter by owner"),
    status: str | None = Query(None, description="Filter by availability status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get properties with pagination."""
    properties, total = property_service.list_properties(
        db, page=page, page_size=page_size, owner_id=owner_id, status=status
    )
    return PaginatedResponse(
        items=[Property.model_validate(p) for p in properties],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{property_id}", response_model=Property)
def get_property_by_id(
    property_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return Property.model_validate(property_service.get_property(db, property_id))
