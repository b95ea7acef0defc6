"""
Attendance aggregation boundary.

The payroll engine only consumes `AttendanceSummary`; how the figures are
produced is up to the injected aggregator.
"""
from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional, Protocol

from sqlalchemy.orm import Session

from app.models.attendance import Attendance, ATTENDED_STATUSES
from app.models.leave_request import LeaveRequest, LeaveStatus
from app.models.leave_type import LeaveType
from app.services.workdays import DbHolidayCalendar, HolidayCalendar, WeekendPolicy, iter_days


@dataclass(frozen=True)
class AttendanceSummary:
    days_worked: float
    loss_of_pay_days: float

    @property
    def working_days(self) -> float:
        return self.days_worked + self.loss_of_pay_days


class AttendanceAggregator(Protocol):
    def aggregate(self, employee_id: int, period_start: date, period_end: date) -> AttendanceSummary:
        ...


class DbAttendanceAggregator:
    """
    Reduce attendance, approved leave and public holidays to payable days.

    Every non-weekend day of the period is either worked or loss of pay:
    public holidays and approved paid leave are paid, approved unpaid leave is
    loss of pay, otherwise the day is worked only if attendance shows the
    employee present (present, late or half day).
    """

    def __init__(
        self,
        db: Session,
        weekend_policy: Optional[WeekendPolicy] = None,
        holiday_calendar: Optional[HolidayCalendar] = None
    ):
        self.db = db
        self.weekend_policy = weekend_policy or WeekendPolicy()
        # Holidays are always paid for payroll, independent of the leave day-count policy
        self.holiday_calendar = holiday_calendar or DbHolidayCalendar(db)

    def aggregate(self, employee_id: int, period_start: date, period_end: date) -> AttendanceSummary:
        holidays = self.holiday_calendar.holidays_between(period_start, period_end)
        leave_days = self._approved_leave_days(employee_id, period_start, period_end)
        attended = {
            row[0] for row in self.db.query(Attendance.date).filter(
                Attendance.employee_id == employee_id,
                Attendance.date >= period_start,
                Attendance.date <= period_end,
                Attendance.status.in_(ATTENDED_STATUSES)
            ).all()
        }

        worked = 0.0
        loss_of_pay = 0.0
        for day in iter_days(period_start, period_end):
            if self.weekend_policy.is_weekend(day):
                continue
            if day in holidays:
                worked += 1
            elif day in leave_days:
                if leave_days[day]:
                    worked += 1
                else:
                    loss_of_pay += 1
            elif day in attended:
                worked += 1
            else:
                loss_of_pay += 1
        return AttendanceSummary(days_worked=worked, loss_of_pay_days=loss_of_pay)

    def _approved_leave_days(self, employee_id: int, period_start: date, period_end: date) -> Dict[date, bool]:
        """Map each day covered by approved leave to whether that leave is paid."""
        rows = self.db.query(LeaveRequest, LeaveType.is_paid).join(
            LeaveType, LeaveRequest.leave_type_id == LeaveType.id
        ).filter(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status == LeaveStatus.APPROVED.value,
            LeaveRequest.start_date <= period_end,
            LeaveRequest.end_date >= period_start
        ).all()

        days: Dict[date, bool] = {}
        for leave, is_paid in rows:
            start = max(leave.start_date, period_start)
            end = min(leave.end_date, period_end)
            for day in iter_days(start, end):
                # Paid wins if two approved leaves ever cover the same day
                days[day] = days.get(day, False) or bool(is_paid)
        return days
