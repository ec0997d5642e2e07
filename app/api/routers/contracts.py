from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_payment_provider, require_roles
from app.db.models.user import User
from app.domain.contract_lifecycle import ContractStatus
from app.schemas.contract import (
    CompleteExpiredRequest,
    CompleteExpiredResult,
    Contract,
    ContractCancel,
    ContractCreate,
    ContractEditable,
    ContractSign,
    ContractSignResult,
    ContractUpdate,
)
from app.schemas.pagination import PaginatedResponse
from app.services import contract as contract_service
from app.services.payment_provider import PaymentProvider

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.post("", response_model=Contract, status_code=status.HTTP_201_CREATED)
def create_new_contract(
    contract_data: ContractCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Propose a new contract to a student. Only KYC-verified owners can create contracts.
    """
    contract = contract_service.create_contract(
        db,
        current_user,
        property_id=contract_data.property_id,
        student_id=contract_data.student_id,
        monthly_rent=contract_data.monthly_rent,
        start_date=contract_data.start_date,
        end_date=contract_data.end_date,
        deposit_amount=contract_data.deposit_amount,
        charges=contract_data.charges,
        conversation_id=contract_data.conversation_id,
    )
    return Contract.model_validate(contract)


@router.get("", response_model=PaginatedResponse[Contract])
def get_all_contracts(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(100, ge=1, le=1000, description="Number of items per page"),
    status: ContractStatus | None = Query(None, description="Filter by contract status"),
    property_id: int | None = Query(None, description="Filter by property ID"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Get contracts with pagination and optional filters.
    - Admin: can see all contracts
    - Owner and Student: only contracts they are a party to
    """
    contracts, total = contract_service.list_contracts_for_user(
        db,
        current_user,
        page=page,
        page_size=page_size,
        status=status,
        property_id=property_id,
    )
    return PaginatedResponse(
        items=[Contract.model_validate(c) for c in contracts],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/complete-expired", response_model=CompleteExpiredResult)
def complete_expired_contracts(
    request: CompleteExpiredRequest | None = None,
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
    current_user: User = Depends(require_roles("admin")),
):
    """Complete every active contract whose end date has passed. Admin only."""
    as_of = request.as_of if request else None
    completed = contract_service.complete_expired_contracts(db, provider, as_of=as_of)
    return CompleteExpiredResult(completed_ids=[c.id for c in completed])


@router.get("/by-conversation/{conversation_id}", response_model=Contract)
def get_contract_by_conversation(
    conversation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get the latest contract proposed in a messaging conversation."""
    contract = contract_service.get_contract_by_conversation_for_user(
        db, conversation_id, current_user
    )
    return Contract.model_validate(contract)


@router.get("/{contract_id}", response_model=Contract)
def get_contract_by_id(
    contract_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Get a contract by ID. Only its owner, its student and admins can see it.
    """
    contract = contract_service.get_contract_for_user(db, contract_id, current_user)
    return Contract.model_validate(contract)


@router.put("/{contract_id}", response_model=Contract)
def update_contract_terms(
    contract_id: int,
    contract_data: ContractUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Update contract terms. Only the contract owner, and only while the contract
    is pending or has been marked editable.

    Only fields explicitly provided in the request body are updated.
    """
    contract = contract_service.update_terms(
        db,
        contract_id,
        current_user,
        **contract_data.model_dump(exclude_unset=True),
    )
    return Contract.model_validate(contract)


@router.put("/{contract_id}/editable", response_model=Contract)
def set_contract_editable(
    contract_id: int,
    request: ContractEditable,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Allow or forbid term edits after the contract left the pending state."""
    contract = contract_service.set_editable(db, contract_id, current_user, request.is_editable)
    return Contract.model_validate(contract)


@router.post("/{contract_id}/sign", response_model=ContractSignResult)
def sign_contract(
    contract_id: int,
    request: ContractSign,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Sign a pending contract as owner or student. The contract becomes active
    once both parties have signed.
    """
    result = contract_service.sign_contract(
        db, contract_id, current_user, request.role, request.signature
    )
    return ContractSignResult(
        contract=Contract.model_validate(result.contract),
        activated=result.activated,
    )


@router.post("/{contract_id}/cancel", response_model=Contract)
def cancel_contract(
    contract_id: int,
    request: ContractCancel | None = None,
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
    current_user: User = Depends(get_current_user),
):
    """Cancel a pending or active contract. Either party or an admin can cancel."""
    contract = contract_service.cancel_contract(
        db,
        contract_id,
        current_user,
        provider,
        reason=request.reason if request else None,
    )
    return Contract.model_validate(contract)


@router.post("/{contract_id}/complete", response_model=Contract)
def complete_contract(
    contract_id: int,
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
    current_user: User = Depends(get_current_user),
):
    """Mark an active contract as completed. Contract owner or admin."""
    contract = contract_service.complete_contract(db, contract_id, current_user, provider)
    return Contract.model_validate(contract)
