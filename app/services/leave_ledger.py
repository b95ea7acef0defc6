"""
Leave Balance Ledger

Owns the per-employee / per-leave-type / per-year balance rows.

Every mutation is a single guarded UPDATE executed inside the caller's
transaction, so the read-validate-write cycle happens in the database and two
concurrent debits against the same row cannot both pass the balance check.
Each movement is mirrored by an append-only LeaveLedgerEntry.
"""
from datetime import datetime, timezone
from typing import List, Optional, Protocol

from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import InsufficientBalanceError, ValidationError
from app.models.leave_balance import LeaveBalance
from app.models.leave_type import LeaveType
from app.models.ledger_entry import LeaveLedgerEntry, LedgerEntryType
from app.services.base import BaseService
from app.services.directory import EmployeeDirectory, DbEmployeeDirectory

BALANCE_KEY = ["employee_id", "leave_type_id", "year"]


class CarryForwardPolicy(Protocol):
    def carry_forward(self, db: Session, employee_id: int, leave_type: LeaveType, year: int) -> float:
        ...


class ZeroCarryForward:
    def carry_forward(self, db: Session, employee_id: int, leave_type: LeaveType, year: int) -> float:
        return 0.0


class LeaveTypeCarryForward:
    """Roll unused prior-year days over for leave types that allow it, capped per type."""

    def carry_forward(self, db: Session, employee_id: int, leave_type: LeaveType, year: int) -> float:
        if not leave_type.allow_carry_forward:
            return 0.0
        previous = db.query(LeaveBalance).filter(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type_id == leave_type.id,
            LeaveBalance.year == year - 1
        ).first()
        if not previous or previous.remaining_days <= 0:
            return 0.0
        days = previous.remaining_days
        if leave_type.max_carry_forward_days is not None:
            days = min(days, leave_type.max_carry_forward_days)
        return float(days)


def carry_forward_policy_from_settings() -> CarryForwardPolicy:
    if settings.leave.carry_forward_policy == "leave_type":
        return LeaveTypeCarryForward()
    return ZeroCarryForward()


class LeaveBalanceLedger(BaseService):
    def __init__(
        self,
        db: Session,
        directory: Optional[EmployeeDirectory] = None,
        carry_forward_policy: Optional[CarryForwardPolicy] = None
    ):
        super().__init__(db)
        self.directory = directory or DbEmployeeDirectory(db)
        self.carry_forward_policy = carry_forward_policy or carry_forward_policy_from_settings()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, employee_id: int, leave_type_id: int, year: int) -> Optional[LeaveBalance]:
        return self.db.query(LeaveBalance).filter(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type_id == leave_type_id,
            LeaveBalance.year == year
        ).populate_existing().first()

    def list_balances(self, employee_id: int, year: Optional[int] = None) -> List[LeaveBalance]:
        query = self.db.query(LeaveBalance).filter(LeaveBalance.employee_id == employee_id)
        if year is not None:
            query = query.filter(LeaveBalance.year == year)
        return query.order_by(LeaveBalance.year.desc(), LeaveBalance.leave_type_id).populate_existing().all()

    def history(self, employee_id: int, leave_type_id: int, year: int) -> List[LeaveLedgerEntry]:
        return self.db.query(LeaveLedgerEntry).filter(
            LeaveLedgerEntry.employee_id == employee_id,
            LeaveLedgerEntry.leave_type_id == leave_type_id,
            LeaveLedgerEntry.year == year
        ).order_by(LeaveLedgerEntry.id).all()

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------
    def initialize(self, employee_id: int, year: int) -> List[LeaveBalance]:
        """
        Create the year's balance for every active leave type the employee does not have yet.

        Idempotent at the (employee, type, year) grain: existing rows are neither
        duplicated nor overwritten, so re-running after a partial failure or
        concurrently for the same employee is safe.

        Returns:
            The balances created by this call (empty when everything already existed).
        """
        if year < 2000 or year > 9999:
            raise ValidationError(f"Invalid year: {year}")
        employee = self.directory.get_active(employee_id)
        if not employee:
            raise ValidationError(
                f"Employee {employee_id} does not exist or is not active",
                details={"employee_id": employee_id}
            )

        leave_types = self.db.query(LeaveType).filter(
            LeaveType.is_active.is_(True)
        ).order_by(LeaveType.id).all()

        created_type_ids = []
        try:
            for leave_type in leave_types:
                carried = self.carry_forward_policy.carry_forward(self.db, employee_id, leave_type, year)
                total = float(leave_type.default_days_per_year)
                values = {
                    "employee_id": employee_id,
                    "leave_type_id": leave_type.id,
                    "year": year,
                    "total_days": total,
                    "used_days": 0.0,
                    "carried_forward_days": carried,
                    "remaining_days": total + carried,
                }
                if self._insert_if_absent(values):
                    created_type_ids.append(leave_type.id)
                    self.db.add(LeaveLedgerEntry(
                        employee_id=employee_id,
                        leave_type_id=leave_type.id,
                        year=year,
                        entry_type=LedgerEntryType.INITIALIZE.value,
                        amount=total + carried,
                        remaining_after=total + carried
                    ))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.log_info(
            f"Initialized {len(created_type_ids)} leave balance(s) for employee {employee_id}, year {year}",
            employee_id=employee_id, year=year
        )
        if not created_type_ids:
            return []
        return self.db.query(LeaveBalance).filter(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.year == year,
            LeaveBalance.leave_type_id.in_(created_type_ids)
        ).order_by(LeaveBalance.leave_type_id).all()

    def _insert_if_absent(self, values: dict) -> bool:
        dialect = self.db.get_bind().dialect.name
        if dialect in ("sqlite", "postgresql"):
            dialect_insert = sqlite_insert if dialect == "sqlite" else pg_insert
            stmt = dialect_insert(LeaveBalance).values(**values).on_conflict_do_nothing(
                index_elements=BALANCE_KEY
            )
            return self.db.execute(stmt).rowcount == 1

        # Generic dialects: let the unique constraint arbitrate inside a savepoint
        try:
            with self.db.begin_nested():
                self.db.execute(insert(LeaveBalance).values(**values))
            return True
        except IntegrityError:
            return False

    # ------------------------------------------------------------------
    # Mutations (run inside the caller's transaction, never commit)
    # ------------------------------------------------------------------
    def debit(
        self,
        employee_id: int,
        leave_type_id: int,
        year: int,
        amount: float,
        leave_request_id: Optional[int] = None
    ) -> LeaveBalance:
        if amount is None or amount <= 0:
            raise ValidationError(f"Debit amount must be positive, got {amount}")

        updated = self._key_query(employee_id, leave_type_id, year).filter(
            LeaveBalance.remaining_days >= amount
        ).update(
            {
                LeaveBalance.used_days: LeaveBalance.used_days + amount,
                LeaveBalance.remaining_days: LeaveBalance.remaining_days - amount,
                LeaveBalance.last_updated: datetime.now(timezone.utc),
            },
            synchronize_session=False
        )
        if updated != 1:
            balance = self.get(employee_id, leave_type_id, year)
            remaining = balance.remaining_days if balance else 0.0
            raise InsufficientBalanceError(
                f"Insufficient leave balance. Requested: {amount}, Remaining: {remaining}",
                details={
                    "employee_id": employee_id,
                    "leave_type_id": leave_type_id,
                    "year": year,
                    "requested": amount,
                    "remaining": remaining,
                }
            )
        return self._record(LedgerEntryType.DEBIT, employee_id, leave_type_id, year, amount, leave_request_id)

    def credit(
        self,
        employee_id: int,
        leave_type_id: int,
        year: int,
        amount: float,
        leave_request_id: Optional[int] = None
    ) -> LeaveBalance:
        if amount is None or amount <= 0:
            raise ValidationError(f"Credit amount must be positive, got {amount}")

        updated = self._key_query(employee_id, leave_type_id, year).filter(
            LeaveBalance.used_days >= amount
        ).update(
            {
                LeaveBalance.used_days: LeaveBalance.used_days - amount,
                LeaveBalance.remaining_days: LeaveBalance.remaining_days + amount,
                LeaveBalance.last_updated: datetime.now(timezone.utc),
            },
            synchronize_session=False
        )
        if updated != 1:
            raise ValidationError(
                f"Credit of {amount} day(s) would drive used days below zero",
                details={"employee_id": employee_id, "leave_type_id": leave_type_id, "year": year}
            )
        return self._record(LedgerEntryType.CREDIT, employee_id, leave_type_id, year, amount, leave_request_id)

    def _key_query(self, employee_id: int, leave_type_id: int, year: int):
        return self.db.query(LeaveBalance).filter(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type_id == leave_type_id,
            LeaveBalance.year == year
        )

    def _record(self, entry_type, employee_id, leave_type_id, year, amount, leave_request_id) -> LeaveBalance:
        balance = self.get(employee_id, leave_type_id, year)
        self.db.add(LeaveLedgerEntry(
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            year=year,
            entry_type=entry_type.value,
            amount=amount,
            leave_request_id=leave_request_id,
            remaining_after=balance.remaining_days
        ))
        self.log_info(
            f"Leave {entry_type.value} of {amount} day(s) for employee {employee_id}, "
            f"type {leave_type_id}, year {year}; remaining {balance.remaining_days}",
            employee_id=employee_id, leave_type_id=leave_type_id, year=year
        )
        return balance
