from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError
from app.core.retry import storage_retry
from app.database import get_db
from app.models.leave_type import LeaveType
from app.routers.auth_deps import Actor, get_current_actor, require_approver, require_hr
from app.schemas.leave import (
    CalculatedDaysResponse,
    LeaveBalanceInitRequest,
    LeaveBalanceResponse,
    LeaveDecisionRequest,
    LeaveRequestCreate,
    LeaveRequestResponse,
    LeaveTypeCreate,
    LeaveTypeResponse,
    LedgerEntryResponse,
)
from app.services.leave_ledger import LeaveBalanceLedger
from app.services.leave_service import LeaveRequestService

router = APIRouter(prefix="/leave", tags=["leave"])


# --- Leave types ---

@router.get("/types", response_model=List[LeaveTypeResponse])
def list_leave_types(include_inactive: bool = False, db: Session = Depends(get_db)):
    query = db.query(LeaveType)
    if not include_inactive:
        query = query.filter(LeaveType.is_active.is_(True))
    return query.order_by(LeaveType.name).all()

@router.post("/types", response_model=LeaveTypeResponse, status_code=201)
def create_leave_type(
    payload: LeaveTypeCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_hr)
):
    if db.query(LeaveType).filter(LeaveType.name == payload.name).first():
        raise ConflictError(f"Leave type '{payload.name}' already exists")
    leave_type = LeaveType(**payload.model_dump(), is_active=True)
    db.add(leave_type)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(leave_type)
    return leave_type

@router.post("/types/{leave_type_id}/deactivate", response_model=LeaveTypeResponse)
def deactivate_leave_type(
    leave_type_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_hr)
):
    # Existing balances keep referencing the type; only new assignment is blocked
    leave_type = db.get(LeaveType, leave_type_id)
    if not leave_type:
        raise NotFoundError(f"Leave type {leave_type_id} not found")
    leave_type.is_active = False
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(leave_type)
    return leave_type


# --- Ledger ---

@router.post("/balances/initialize", response_model=List[LeaveBalanceResponse])
def initialize_balances(
    payload: LeaveBalanceInitRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_hr)
):
    """Create the year's balances; returns only the rows created by this call."""
    ledger = LeaveBalanceLedger(db)
    return storage_retry(ledger.initialize)(payload.employee_id, payload.year)

@router.get("/balances/{employee_id}", response_model=List[LeaveBalanceResponse])
def list_balances(employee_id: int, year: Optional[int] = None, db: Session = Depends(get_db)):
    return LeaveBalanceLedger(db).list_balances(employee_id, year)

@router.get("/balances/{employee_id}/{leave_type_id}/{year}", response_model=LeaveBalanceResponse)
def get_balance(employee_id: int, leave_type_id: int, year: int, db: Session = Depends(get_db)):
    balance = LeaveBalanceLedger(db).get(employee_id, leave_type_id, year)
    if not balance:
        raise NotFoundError(
            f"No balance for employee {employee_id}, leave type {leave_type_id}, year {year}"
        )
    return balance

@router.get("/balances/{employee_id}/{leave_type_id}/{year}/history", response_model=List[LedgerEntryResponse])
def get_balance_history(employee_id: int, leave_type_id: int, year: int, db: Session = Depends(get_db)):
    return LeaveBalanceLedger(db).history(employee_id, leave_type_id, year)


# --- Requests ---

@router.get("/calculate-days", response_model=CalculatedDaysResponse)
def calculate_days(
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db)
):
    days = LeaveRequestService(db).calculate_days(start_date, end_date)
    return {"start_date": start_date, "end_date": end_date, "days": days}

@router.post("/requests", response_model=LeaveRequestResponse, status_code=201)
def submit_leave_request(
    payload: LeaveRequestCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return LeaveRequestService(db).submit(
        payload.employee_id,
        payload.leave_type_id,
        payload.start_date,
        payload.end_date,
        payload.reason
    )

@router.get("/requests", response_model=List[LeaveRequestResponse])
def list_leave_requests(
    employee_id: Optional[int] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db)
):
    return LeaveRequestService(db).list_requests(employee_id=employee_id, status=status)

@router.get("/requests/{request_id}", response_model=LeaveRequestResponse)
def get_leave_request(request_id: int, db: Session = Depends(get_db)):
    return LeaveRequestService(db).get(request_id)

@router.post("/requests/{request_id}/approve", response_model=LeaveRequestResponse)
def approve_leave_request(
    request_id: int,
    decision: LeaveDecisionRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_approver)
):
    service = LeaveRequestService(db)
    return storage_retry(service.approve)(request_id, decision.comments, approver=actor.user_id)

@router.post("/requests/{request_id}/reject", response_model=LeaveRequestResponse)
def reject_leave_request(
    request_id: int,
    decision: LeaveDecisionRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_approver)
):
    service = LeaveRequestService(db)
    return storage_retry(service.reject)(request_id, decision.comments, approver=actor.user_id)

@router.post("/requests/{request_id}/cancel", response_model=LeaveRequestResponse)
def cancel_leave_request(
    request_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Withdraw a pending request."""
    service = LeaveRequestService(db)
    return storage_retry(service.cancel)(request_id, reversal=False, actor=actor.user_id)

@router.post("/requests/{request_id}/revoke", response_model=LeaveRequestResponse)
def revoke_leave_request(
    request_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_hr)
):
    """Administrative reversal: cancel an approved request and credit the days back."""
    service = LeaveRequestService(db)
    return storage_retry(service.cancel)(request_id, reversal=True, actor=actor.user_id)
