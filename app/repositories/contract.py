from datetime import date, datetime

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.db.models.contract import Contract as ContractModel
from app.domain.contract_lifecycle import (
    OPEN_STATUSES,
    ContractEvent,
    ContractStatus,
    SignatoryRole,
    sources_for,
)
from app.errors import NotFoundError

_SIGNATURE_COLUMNS = {
    SignatoryRole.OWNER: (ContractModel.owner_signature, ContractModel.owner_signed_at),
    SignatoryRole.STUDENT: (ContractModel.student_signature, ContractModel.student_signed_at),
}


def get_contract_by_id(db: Session, contract_id: int) -> ContractModel | None:
    """Get a contract by ID."""
    return db.query(ContractModel).filter(ContractModel.id == contract_id).first()


def get_contract_for_update(db: Session, contract_id: int) -> ContractModel | None:
    """Get a contract by ID with a row lock, bypassing any stale identity-map state."""
    return (
        db.query(ContractModel)
        .filter(ContractModel.id == contract_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def get_contract_by_subscription_id(
    db: Session, subscription_id: str
) -> ContractModel | None:
    return (
        db.query(ContractModel)
        .filter(ContractModel.stripe_subscription_id == subscription_id)
        .first()
    )


def get_latest_contract_by_conversation(
    db: Session, conversation_id: int
) -> ContractModel | None:
    return (
        db.query(ContractModel)
        .filter(ContractModel.conversation_id == conversation_id)
        .order_by(ContractModel.created_at.desc(), ContractModel.id.desc())
        .first()
    )


def get_open_contract_for_property(db: Session, property_id: int) -> ContractModel | None:
    """Get the pending or active contract holding a property, if any."""
    return (
        db.query(ContractModel)
        .filter(
            ContractModel.property_id == property_id,
            ContractModel.status.in_([s.value for s in OPEN_STATUSES]),
        )
        .first()
    )


def get_contracts_pending_unlink(db: Session) -> list[ContractModel]:
    return (
        db.query(ContractModel)
        .filter(ContractModel.subscription_unlink_pending.is_(True))
        .order_by(ContractModel.id)
        .all()
    )


def get_expired_active_contracts(db: Session, as_of: date) -> list[ContractModel]:
    return (
        db.query(ContractModel)
        .filter(
            ContractModel.status == ContractStatus.ACTIVE.value,
            ContractModel.end_date < as_of,
        )
        .order_by(ContractModel.id)
        .all()
    )


def create_contract(db: Session, **fields) -> ContractModel:
    """Create a new contract in the database. Pure data access - no business logic."""
    db_contract = ContractModel(status=ContractStatus.PENDING.value, **fields)
    db.add(db_contract)
    db.commit()
    db.refresh(db_contract)
    return db_contract


def update_contract(db: Session, contract_id: int, **kwargs) -> ContractModel:
    """
    Update a contract. Only updates fields that are explicitly provided.

    To clear a field (set to None), explicitly pass it with None value.
    Fields not provided are not updated.
    """
    contract = get_contract_by_id(db, contract_id)
    if not contract:
        raise NotFoundError("Contract not found")

    for field, value in kwargs.items():
        setattr(contract, field, value)

    db.commit()
    db.refresh(contract)
    return contract


def record_signature(
    db: Session,
    contract_id: int,
    role: SignatoryRole,
    signature: str,
    signed_at: datetime,
) -> bool:
    """
    Write one party's signature if that party has not signed yet.

    Both statements are conditional updates evaluated by the database inside
    one transaction, so the "are both signatures present?" check reads the
    committed row rather than whatever this session loaded earlier. A
    concurrent signer on the same row blocks on the first UPDATE until this
    transaction commits.

    The caller runs ``activate_if_fully_signed`` and commits.

    Returns:
        True if the signature was written, False if the contract is no longer
        pending or that party had already signed.
    """
    signature_col, signed_at_col = _SIGNATURE_COLUMNS[SignatoryRole(role)]
    result = db.execute(
        update(ContractModel)
        .where(
            ContractModel.id == contract_id,
            ContractModel.status == ContractStatus.PENDING.value,
            signature_col.is_(None),
        )
        .values(
            {
                signature_col: signature,
                signed_at_col: signed_at,
                ContractModel.updated_at: signed_at,
            }
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def activate_if_fully_signed(db: Session, contract_id: int, activated_at: datetime) -> bool:
    """Conditionally move a pending contract to active when both signatures are stored."""
    sources = [s.value for s in sources_for(ContractEvent.ACTIVATE)]
    result = db.execute(
        update(ContractModel)
        .where(
            ContractModel.id == contract_id,
            ContractModel.status.in_(sources),
            ContractModel.owner_signature.isnot(None),
            ContractModel.student_signature.isnot(None),
        )
        .values(
            status=ContractStatus.ACTIVE.value,
            activated_at=activated_at,
            updated_at=activated_at,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def transition_status(
    db: Session,
    contract_id: int,
    event: ContractEvent,
    to_status: ContractStatus,
    **fields,
) -> bool:
    """Conditionally apply a status transition; False if the row is no longer in a source state."""
    sources = [s.value for s in sources_for(event)]
    result = db.execute(
        update(ContractModel)
        .where(ContractModel.id == contract_id, ContractModel.status.in_(sources))
        .values(status=to_status.value, **fields)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def get_all_contracts_paginated(
    db: Session,
    page: int = 1,
    page_size: int = 100,
    party_id: int | None = None,
    property_id: int | None = None,
    status: str | None = None,
) -> tuple[list[ContractModel], int]:
    """
    Get all contracts with pagination and optional filters.

    Args:
        page: Page number (1-indexed)
        page_size: Number of items per page
        party_id: Optional filter on contracts where this user is owner or student
        property_id: Optional filter by property ID
        status: Optional filter by contract status

    Returns:
        Tuple of (list of contracts, total count)
    """
    query = db.query(ContractModel)

    if party_id is not None:
        query = query.filter(
            or_(ContractModel.owner_id == party_id, ContractModel.student_id == party_id)
        )

    if property_id is not None:
        query = query.filter(ContractModel.property_id == property_id)

    if status is not None:
        query = query.filter(ContractModel.status == status)

    total = query.count()
    skip = (page - 1) * page_size
    contracts = (
        query.order_by(ContractModel.created_at.desc(), ContractModel.id.desc())
        .offset(skip)
        .limit(page_size)
        .all()
    )
    return contracts, total
