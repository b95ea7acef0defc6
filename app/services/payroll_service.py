"""
Payroll Service Layer

Payroll run engine: builds one immutable-once-finalized run per (month, year).

Architecture:
- Router -> Service (this module) -> Models / collaborators
- Attendance, salary structures and the employee roster come from injected
  collaborators; the engine never recomputes attendance itself
- A run is processed in a single transaction: every employee line commits or none does

Run lifecycle: draft -> finalized (one-way); only draft runs can be deleted.
"""

import calendar
import logging
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from app.models.payroll import (
    PayrollRun, EmployeePayroll, PayrollDetail, PayrollStatus, PaymentStatus, PAYROLL_TRANSITIONS
)
from app.models.salary_component import ComponentType
from app.services.attendance import AttendanceAggregator, AttendanceSummary, DbAttendanceAggregator
from app.services.directory import EmployeeDirectory, DbEmployeeDirectory
from app.services.salary import DbSalaryStructureProvider, SalaryAssignment, SalaryStructureProvider

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def period_bounds(month: int, year: int):
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def compute_component_amount(assignment: SalaryAssignment, summary: AttendanceSummary) -> Decimal:
    """
    Amount payable for one component in the period.

    Prorating components are scaled by days_worked / working_days; the rest
    (by default every deduction) are charged on the full-period base.
    """
    if not assignment.prorates or summary.working_days <= 0:
        return _money(assignment.amount)
    worked = Decimal(str(summary.days_worked))
    working = Decimal(str(summary.working_days))
    return _money(assignment.amount * worked / working)


def _validate_period(month: int, year: int):
    if month < 1 or month > 12 or year < 2000 or year > 9999:
        raise ValidationError(f"Invalid payroll period: {month}/{year}")


def get_payroll_run(db: Session, run_id: int, for_update: bool = False) -> PayrollRun:
    query = db.query(PayrollRun).filter(PayrollRun.id == run_id)
    if for_update:
        query = query.with_for_update()
    run = query.populate_existing().first()
    if not run:
        raise NotFoundError(f"Payroll run {run_id} not found")
    return run


def _find_replay(db: Session, month: int, year: int, idempotency_key: Optional[str]) -> Optional[PayrollRun]:
    """
    Run previously created with this idempotency key for this period.
    Reusing a key for a different period is a ConflictError.
    """
    if not idempotency_key:
        return None
    run = db.query(PayrollRun).filter(PayrollRun.idempotency_key == idempotency_key).first()
    if run is None:
        return None
    if (run.month, run.year) != (month, year):
        raise ConflictError(
            f"Idempotency key '{idempotency_key}' was already used for payroll run {run.id} "
            f"({run.month}/{run.year})",
            details={"payroll_run_id": run.id, "idempotency_key": idempotency_key}
        )
    return run


def process_payroll(
    db: Session,
    month: int,
    year: int,
    idempotency_key: Optional[str] = None,
    aggregator: Optional[AttendanceAggregator] = None,
    salary_provider: Optional[SalaryStructureProvider] = None,
    directory: Optional[EmployeeDirectory] = None
) -> PayrollRun:
    """
    Create a draft payroll run for (month, year) covering every active employee.

    Args:
        db: Database session
        month: Payroll month (1-12)
        year: Payroll year
        idempotency_key: Optional caller key; replaying the same key for a period
            that already has a run returns that run instead of failing
        aggregator: Attendance collaborator (defaults to the database-backed one)
        salary_provider: Salary structure collaborator
        directory: Active-employee collaborator

    Returns:
        The new (or replayed) PayrollRun

    Raises:
        ConflictError: a run for the period already exists, or the idempotency key
            was already used for another period
        ValidationError: invalid period or malformed collaborator data
    """
    _validate_period(month, year)
    aggregator = aggregator or DbAttendanceAggregator(db)
    salary_provider = salary_provider or DbSalaryStructureProvider(db)
    directory = directory or DbEmployeeDirectory(db)

    replay = _find_replay(db, month, year, idempotency_key)
    if replay:
        logger.info(f"Replayed payroll run {replay.id} for {month}/{year}")
        return replay

    existing = db.query(PayrollRun).filter(
        PayrollRun.month == month,
        PayrollRun.year == year
    ).first()
    if existing:
        raise ConflictError(
            f"A payroll run for {month}/{year} already exists",
            details={"payroll_run_id": existing.id, "status": existing.status}
        )

    period_start, period_end = period_bounds(month, year)
    run = PayrollRun(
        month=month,
        year=year,
        status=PayrollStatus.DRAFT.value,
        processed_date=datetime.now(timezone.utc),
        total_payout=Decimal("0.00"),
        idempotency_key=idempotency_key
    )

    try:
        db.add(run)
        try:
            db.flush()
        except IntegrityError:
            # Lost the race against a concurrent process() for the same period or key
            db.rollback()
            replay = _find_replay(db, month, year, idempotency_key)
            if replay is None:
                raise ConflictError(f"A payroll run for {month}/{year} already exists")
            logger.info(f"Replayed payroll run {replay.id} for {month}/{year} after a concurrent process")
            return replay

        total_payout = Decimal("0.00")
        processed = 0
        for employee in directory.list_active():
            assignments = salary_provider.active_assignments(employee.id, period_end)
            if not assignments:
                logger.info(f"Skipping employee {employee.id}: no salary structure")
                continue
            summary = aggregator.aggregate(employee.id, period_start, period_end)
            line = _build_employee_payroll(employee.id, summary, assignments)
            run.employee_payrolls.append(line)
            total_payout += line.net_salary
            processed += 1

        run.total_payout = _money(total_payout)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(run)
    logger.info(
        f"Processed payroll run {run.id} for {month}/{year}: "
        f"{processed} employee(s), total payout {run.total_payout}"
    )
    return run


def _build_employee_payroll(
    employee_id: int,
    summary: AttendanceSummary,
    assignments: List[SalaryAssignment]
) -> EmployeePayroll:
    if summary.days_worked < 0 or summary.loss_of_pay_days < 0:
        raise ValidationError(f"Invalid attendance summary for employee {employee_id}: {summary}")

    total_earnings = Decimal("0.00")
    total_deductions = Decimal("0.00")
    details = []
    for assignment in assignments:
        amount = compute_component_amount(assignment, summary)
        details.append(PayrollDetail(
            salary_component_id=assignment.component_id,
            component_name=assignment.name,
            component_type=assignment.component_type.value,
            amount=amount
        ))
        if assignment.component_type == ComponentType.EARNING:
            total_earnings += amount
        else:
            total_deductions += amount

    net_salary = total_earnings - total_deductions
    if net_salary < 0:
        logger.warning(
            f"Negative net pay for employee {employee_id}: deductions {total_deductions} "
            f"exceed earnings {total_earnings}"
        )

    return EmployeePayroll(
        employee_id=employee_id,
        working_days=summary.working_days,
        days_worked=summary.days_worked,
        loss_of_pay_days=summary.loss_of_pay_days,
        total_earnings=total_earnings,
        total_deductions=total_deductions,
        net_salary=net_salary,
        payment_status=PaymentStatus.PENDING.value,
        details=details
    )


def _claim_draft(db: Session, run_id: int, values: Dict[Any, Any], action: str) -> None:
    """
    Guarded single-statement write on a run that must still be draft.

    The status check happens in the UPDATE itself, so a run finalized by a
    concurrent transaction after it was read here is never touched.
    """
    updated = db.query(PayrollRun).filter(
        PayrollRun.id == run_id,
        PayrollRun.status == PayrollStatus.DRAFT.value
    ).update(values, synchronize_session=False)
    if updated != 1:
        raise InvalidStateError(
            f"Cannot {action} payroll run {run_id}: it is no longer a draft",
            details={"payroll_run_id": run_id}
        )


def finalize_payroll(db: Session, run_id: int) -> PayrollRun:
    """Draft -> finalized. The run and its lines are read-only afterwards."""
    try:
        run = get_payroll_run(db, run_id, for_update=True)
        current = PayrollStatus(run.status)
        if PayrollStatus.FINALIZED not in PAYROLL_TRANSITIONS[current]:
            raise InvalidStateError(
                f"Payroll run {run_id} is already {current.value}",
                details={"payroll_run_id": run_id}
            )
        if not run.employee_payrolls:
            raise InvalidStateError(
                f"Payroll run {run_id} has no employee payroll lines to finalize",
                details={"payroll_run_id": run_id}
            )
        _claim_draft(db, run_id, {
            PayrollRun.status: PayrollStatus.FINALIZED.value,
            PayrollRun.finalized_date: datetime.now(timezone.utc),
        }, "finalize")
        db.commit()
    except Exception:
        db.rollback()
        raise

    run = get_payroll_run(db, run_id)
    logger.info(f"Finalized payroll run {run.id} for {run.month}/{run.year}")
    return run


def delete_payroll_run(db: Session, run_id: int) -> None:
    """Delete a draft run with all its lines. Finalized runs are permanent records."""
    try:
        run = get_payroll_run(db, run_id, for_update=True)
        if run.status == PayrollStatus.FINALIZED.value:
            raise InvalidStateError(
                f"Cannot delete finalized payroll run {run_id}",
                details={"payroll_run_id": run_id}
            )
        # Write-locks the row while it is still draft; a concurrent finalize then waits and loses
        _claim_draft(db, run_id, {PayrollRun.status: PayrollStatus.DRAFT.value}, "delete")
        db.delete(run)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Deleted draft payroll run {run_id}")


def list_payroll_runs(db: Session) -> List[Dict[str, Any]]:
    runs = db.query(PayrollRun).order_by(PayrollRun.year.desc(), PayrollRun.month.desc()).all()
    return [run_to_dict(r) for r in runs]


def get_payroll_run_details(db: Session, run_id: int) -> Dict[str, Any]:
    """Run header plus every employee line with its component breakdown."""
    run = get_payroll_run(db, run_id)
    result = run_to_dict(run)
    result["employee_payrolls"] = [
        _employee_payroll_to_dict(line)
        for line in sorted(run.employee_payrolls, key=lambda p: p.employee_id)
    ]
    return result


def get_employee_payroll_history(db: Session, employee_id: int) -> List[Dict[str, Any]]:
    """Payslips of one employee across runs, newest period first."""
    lines = db.query(EmployeePayroll).join(
        PayrollRun, EmployeePayroll.payroll_run_id == PayrollRun.id
    ).filter(
        EmployeePayroll.employee_id == employee_id
    ).order_by(PayrollRun.year.desc(), PayrollRun.month.desc()).all()

    history = []
    for line in lines:
        item = _employee_payroll_to_dict(line)
        item["month"] = line.payroll_run.month
        item["year"] = line.payroll_run.year
        item["run_status"] = line.payroll_run.status
        history.append(item)
    return history


def run_to_dict(run: PayrollRun) -> Dict[str, Any]:
    """Convert PayrollRun model to dict representation."""
    return {
        "id": run.id,
        "month": run.month,
        "year": run.year,
        "status": run.status,
        "processed_date": run.processed_date.isoformat() if run.processed_date else None,
        "finalized_date": run.finalized_date.isoformat() if run.finalized_date else None,
        "total_payout": float(run.total_payout or 0),
        "employee_count": len(run.employee_payrolls),
    }


def _employee_payroll_to_dict(line: EmployeePayroll) -> Dict[str, Any]:
    return {
        "id": line.id,
        "payroll_run_id": line.payroll_run_id,
        "employee_id": line.employee_id,
        "employee_name": line.employee.full_name if line.employee else None,
        "working_days": line.working_days,
        "days_worked": line.days_worked,
        "loss_of_pay_days": line.loss_of_pay_days,
        "total_earnings": float(line.total_earnings),
        "total_deductions": float(line.total_deductions),
        "net_salary": float(line.net_salary),
        "payment_status": line.payment_status,
        "details": [
            {
                "id": d.id,
                "salary_component_id": d.salary_component_id,
                "name": d.component_name,
                "type": d.component_type,
                "amount": float(d.amount),
            }
            for d in line.details
        ],
    }
