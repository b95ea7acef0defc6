"""
Leave Request Service

Drives a leave request through its lifecycle and keeps the ledger in step:

    pending -> approved | rejected | cancelled
    approved -> cancelled   (administrative reversal, credits the ledger)

Status changes are guarded UPDATEs on the expected current status, executed in
the same transaction as the ledger mutation they trigger.
"""
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from app.models.leave_request import LeaveRequest, LeaveStatus, LEAVE_TRANSITIONS
from app.models.leave_type import LeaveType
from app.services.base import BaseService
from app.services.directory import EmployeeDirectory, DbEmployeeDirectory
from app.services.leave_ledger import LeaveBalanceLedger
from app.services.workdays import (
    HolidayCalendar, WeekendPolicy, count_working_days, default_holiday_calendar
)

OPEN_STATUSES = (LeaveStatus.PENDING.value, LeaveStatus.APPROVED.value)


class LeaveRequestService(BaseService):
    def __init__(
        self,
        db: Session,
        ledger: Optional[LeaveBalanceLedger] = None,
        directory: Optional[EmployeeDirectory] = None,
        weekend_policy: Optional[WeekendPolicy] = None,
        holiday_calendar: Optional[HolidayCalendar] = None
    ):
        super().__init__(db)
        self.directory = directory or DbEmployeeDirectory(db)
        self.ledger = ledger or LeaveBalanceLedger(db, directory=self.directory)
        self.weekend_policy = weekend_policy or WeekendPolicy()
        self.holiday_calendar = holiday_calendar or default_holiday_calendar(db)

    def calculate_days(self, start_date: date, end_date: date) -> float:
        """Working days in [start_date, end_date], excluding weekends and (per policy) public holidays."""
        if end_date < start_date:
            raise ValidationError("End date cannot be before start date")
        return float(count_working_days(start_date, end_date, self.weekend_policy, self.holiday_calendar))

    def get(self, request_id: int) -> LeaveRequest:
        leave = self.db.query(LeaveRequest).filter(LeaveRequest.id == request_id).populate_existing().first()
        if not leave:
            raise NotFoundError(f"Leave request {request_id} not found")
        return leave

    def list_requests(self, employee_id: Optional[int] = None, status: Optional[str] = None) -> List[LeaveRequest]:
        query = self.db.query(LeaveRequest)
        if employee_id is not None:
            query = query.filter(LeaveRequest.employee_id == employee_id)
        if status:
            query = query.filter(LeaveRequest.status == status)
        return query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc()).all()

    def submit(
        self,
        employee_id: int,
        leave_type_id: int,
        start_date: date,
        end_date: date,
        reason: Optional[str] = None
    ) -> LeaveRequest:
        if end_date < start_date:
            raise ValidationError("End date cannot be before start date")

        if not self.directory.get_active(employee_id):
            raise ValidationError(f"Employee {employee_id} does not exist or is not active")

        leave_type = self.db.get(LeaveType, leave_type_id)
        if not leave_type or not leave_type.is_active:
            raise ValidationError(f"Leave type {leave_type_id} does not exist or is not active")

        days = self.calculate_days(start_date, end_date)
        if days == 0:
            raise ValidationError("The requested period contains no working days")

        if leave_type.max_consecutive_days and days > leave_type.max_consecutive_days:
            raise ValidationError(
                f"{leave_type.name} allows at most {leave_type.max_consecutive_days} consecutive day(s)"
            )

        overlapping = self.db.query(LeaveRequest).filter(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_(OPEN_STATUSES),
            LeaveRequest.start_date <= end_date,
            LeaveRequest.end_date >= start_date
        ).first()
        if overlapping:
            raise ValidationError(
                f"Request overlaps leave request {overlapping.id} "
                f"({overlapping.start_date} to {overlapping.end_date})",
                details={"conflicting_request_id": overlapping.id}
            )

        # Checked again at approval: the balance may move in between
        balance = self.ledger.get(employee_id, leave_type_id, start_date.year)
        if balance is None:
            raise ValidationError(
                f"No {leave_type.name} balance initialized for {start_date.year}"
            )
        if balance.remaining_days < days:
            raise ValidationError(
                f"Insufficient balance. Requested: {days}, Remaining: {balance.remaining_days}",
                details={"requested": days, "remaining": balance.remaining_days}
            )

        leave = LeaveRequest(
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            start_date=start_date,
            end_date=end_date,
            days=days,
            reason=reason,
            status=LeaveStatus.PENDING.value
        )
        self.db.add(leave)
        self.commit()
        self.db.refresh(leave)
        self.log_info(f"Leave request {leave.id} submitted for {days} day(s)", employee_id=employee_id)
        return leave

    def approve(self, request_id: int, comments: Optional[str] = None, approver: Optional[str] = None) -> LeaveRequest:
        leave = self.get(request_id)
        self._ensure_transition(leave, LeaveStatus.APPROVED)
        try:
            self._transition(leave, LeaveStatus.PENDING, LeaveStatus.APPROVED, comments, approver)
            self.ledger.debit(
                leave.employee_id, leave.leave_type_id, leave.start_date.year, leave.days,
                leave_request_id=leave.id
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.log_info(f"Leave request {request_id} approved", employee_id=leave.employee_id)
        return self.get(request_id)

    def reject(self, request_id: int, comments: Optional[str] = None, approver: Optional[str] = None) -> LeaveRequest:
        leave = self.get(request_id)
        self._ensure_transition(leave, LeaveStatus.REJECTED)
        try:
            self._transition(leave, LeaveStatus.PENDING, LeaveStatus.REJECTED, comments, approver)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.log_info(f"Leave request {request_id} rejected", employee_id=leave.employee_id)
        return self.get(request_id)

    def cancel(self, request_id: int, reversal: bool = False, actor: Optional[str] = None) -> LeaveRequest:
        """
        Cancel a request.

        Pending requests are cancelled without ledger effect. Approved requests
        can only be cancelled as an administrative reversal, which credits the
        full `days` back to the balance they were debited from.
        """
        leave = self.get(request_id)
        self._ensure_transition(leave, LeaveStatus.CANCELLED)
        current = LeaveStatus(leave.status)
        if current == LeaveStatus.APPROVED and not reversal:
            raise InvalidStateError(
                f"Leave request {request_id} is approved; only an administrator can revoke it"
            )
        try:
            self._transition(leave, current, LeaveStatus.CANCELLED, None, actor)
            if current == LeaveStatus.APPROVED:
                self.ledger.credit(
                    leave.employee_id, leave.leave_type_id, leave.start_date.year, leave.days,
                    leave_request_id=leave.id
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.log_info(
            f"Leave request {request_id} cancelled from {current.value}", employee_id=leave.employee_id
        )
        return self.get(request_id)

    @staticmethod
    def _ensure_transition(leave: LeaveRequest, target: LeaveStatus):
        current = LeaveStatus(leave.status)
        if target not in LEAVE_TRANSITIONS[current]:
            raise InvalidStateError(
                f"Cannot move leave request {leave.id} from {current.value} to {target.value}",
                details={"request_id": leave.id, "status": current.value}
            )

    def _transition(
        self,
        leave: LeaveRequest,
        expected: LeaveStatus,
        target: LeaveStatus,
        comments: Optional[str],
        actor: Optional[str]
    ):
        values = {
            LeaveRequest.status: target.value,
            LeaveRequest.decided_by: actor,
            LeaveRequest.decided_at: datetime.now(timezone.utc),
        }
        if comments is not None:
            values[LeaveRequest.approver_comments] = comments
        updated = self.db.query(LeaveRequest).filter(
            LeaveRequest.id == leave.id,
            LeaveRequest.status == expected.value
        ).update(values, synchronize_session=False)
        if updated != 1:
            # Another transaction moved the request first
            raise InvalidStateError(
                f"Leave request {leave.id} is no longer {expected.value}",
                details={"request_id": leave.id}
            )
