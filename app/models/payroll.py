from sqlalchemy import (
    Column, Integer, String, Float, Numeric, DateTime, ForeignKey, UniqueConstraint, event, inspect
)
from sqlalchemy.orm import relationship, Session
from sqlalchemy.sql import func
from app.database import Base
from app.core.exceptions import InvalidStateError
import enum

class PayrollStatus(str, enum.Enum):
    DRAFT = "draft"
    FINALIZED = "finalized"

# Deleting a draft run is handled separately; finalized is terminal
PAYROLL_TRANSITIONS = {
    PayrollStatus.DRAFT: {PayrollStatus.FINALIZED},
    PayrollStatus.FINALIZED: set(),
}

class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"

class PayrollRun(Base):
    __tablename__ = "payroll_runs"
    __table_args__ = (
        UniqueConstraint("month", "year", name="uq_payroll_run_period"),
    )

    id = Column(Integer, primary_key=True, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    status = Column(String, default=PayrollStatus.DRAFT.value, nullable=False)
    processed_date = Column(DateTime(timezone=True), server_default=func.now())
    finalized_date = Column(DateTime(timezone=True), nullable=True)
    total_payout = Column(Numeric(14, 2), nullable=False, default=0)
    idempotency_key = Column(String, nullable=True, unique=True)

    employee_payrolls = relationship(
        "EmployeePayroll", back_populates="payroll_run", cascade="all, delete-orphan"
    )

class EmployeePayroll(Base):
    __tablename__ = "employee_payrolls"
    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="uq_employee_payroll_run_employee"),
    )

    id = Column(Integer, primary_key=True, index=True)
    payroll_run_id = Column(Integer, ForeignKey("payroll_runs.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    working_days = Column(Float, nullable=False)
    days_worked = Column(Float, nullable=False)
    loss_of_pay_days = Column(Float, nullable=False)
    total_earnings = Column(Numeric(12, 2), nullable=False)
    total_deductions = Column(Numeric(12, 2), nullable=False)
    net_salary = Column(Numeric(12, 2), nullable=False)
    payment_status = Column(String, default=PaymentStatus.PENDING.value, nullable=False)

    payroll_run = relationship("PayrollRun", back_populates="employee_payrolls")
    employee = relationship("Employee")
    details = relationship(
        "PayrollDetail", back_populates="employee_payroll", cascade="all, delete-orphan"
    )

class PayrollDetail(Base):
    __tablename__ = "payroll_details"

    id = Column(Integer, primary_key=True, index=True)
    employee_payroll_id = Column(Integer, ForeignKey("employee_payrolls.id"), nullable=False, index=True)
    salary_component_id = Column(Integer, ForeignKey("salary_components.id"), nullable=False)
    # Snapshot of the component at processing time
    component_name = Column(String, nullable=False)
    component_type = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    employee_payroll = relationship("EmployeePayroll", back_populates="details")


def _was_finalized(run: PayrollRun) -> bool:
    history = inspect(run).attrs.status.load_history()
    committed = list(history.unchanged) + list(history.deleted)
    return PayrollStatus.FINALIZED.value in committed


def _owning_run(obj):
    if isinstance(obj, PayrollRun):
        return obj
    if isinstance(obj, EmployeePayroll):
        return obj.payroll_run
    if isinstance(obj, PayrollDetail):
        line = obj.employee_payroll
        return line.payroll_run if line is not None else None
    return None


@event.listens_for(Session, "before_flush")
def _guard_finalized_payroll(session, flush_context, instances):
    """Finalized runs and everything they own are read-only."""
    with session.no_autoflush:
        candidates = [o for o in session.new if not isinstance(o, PayrollRun)]
        candidates += [o for o in session.dirty if session.is_modified(o)]
        candidates += list(session.deleted)
        for obj in candidates:
            if not isinstance(obj, (PayrollRun, EmployeePayroll, PayrollDetail)):
                continue
            run = _owning_run(obj)
            if run is not None and inspect(run).persistent and _was_finalized(run):
                raise InvalidStateError(
                    f"Payroll run {run.id} is finalized and cannot be modified.",
                    details={"payroll_run_id": run.id}
                )
