"""
Payroll Router

Handles HTTP endpoints for payroll runs.
All business logic is delegated to the payroll service layer.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from app.core.retry import storage_retry
from app.database import get_db
from app.routers.auth_deps import Actor, require_hr
from app.schemas.payroll import (
    PayrollProcessRequest,
    PayrollRunDetailResponse,
    PayrollRunResponse,
    PayslipResponse,
)
from app.services import payroll_service

router = APIRouter(
    prefix="/payroll",
    tags=["payroll"],
    dependencies=[Depends(require_hr)]
)


@router.post("/process", response_model=PayrollRunDetailResponse, status_code=201)
def process_payroll(
    request: PayrollProcessRequest,
    db: Session = Depends(get_db),
    idempotency_key: Optional[str] = Header(default=None)
):
    """
    Create the draft payroll run for a period.
    Retrying with the same Idempotency-Key returns the run created by the first attempt.
    """
    run = storage_retry(payroll_service.process_payroll)(
        db, request.month, request.year, idempotency_key=idempotency_key
    )
    return payroll_service.get_payroll_run_details(db, run.id)


@router.get("/runs", response_model=List[PayrollRunResponse])
def list_payroll_runs(db: Session = Depends(get_db)):
    return payroll_service.list_payroll_runs(db)


@router.get("/runs/{run_id}", response_model=PayrollRunDetailResponse)
def get_payroll_run(run_id: int, db: Session = Depends(get_db)):
    return payroll_service.get_payroll_run_details(db, run_id)


@router.post("/runs/{run_id}/finalize", response_model=PayrollRunResponse)
def finalize_payroll_run(run_id: int, db: Session = Depends(get_db)):
    run = storage_retry(payroll_service.finalize_payroll)(db, run_id)
    return payroll_service.run_to_dict(run)


@router.delete("/runs/{run_id}")
def delete_payroll_run(run_id: int, db: Session = Depends(get_db)):
    storage_retry(payroll_service.delete_payroll_run)(db, run_id)
    return {"success": True, "message": f"Payroll run {run_id} deleted"}


@router.get("/employees/{employee_id}/history", response_model=List[PayslipResponse])
def get_payroll_history(employee_id: int, db: Session = Depends(get_db)):
    return payroll_service.get_employee_payroll_history(db, employee_id)
