# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    employee, leave_type, leave_balance, ledger_entry, leave_request,
    public_holiday, attendance, salary_component, payroll
)

# Explicit class exports for cleaner imports
from .employee import Employee, EmploymentStatus
from .leave_type import LeaveType
from .leave_balance import LeaveBalance
from .ledger_entry import LeaveLedgerEntry, LedgerEntryType
from .leave_request import LeaveRequest, LeaveStatus
from .public_holiday import PublicHoliday
from .attendance import Attendance, AttendanceStatus
from .salary_component import SalaryComponent, EmployeeSalaryStructure, ComponentType
from .payroll import PayrollRun, EmployeePayroll, PayrollDetail, PayrollStatus, PaymentStatus

__all__ = [
    "Employee",
    "EmploymentStatus",
    "LeaveType",
    "LeaveBalance",
    "LeaveLedgerEntry",
    "LedgerEntryType",
    "LeaveRequest",
    "LeaveStatus",
    "PublicHoliday",
    "Attendance",
    "AttendanceStatus",
    "SalaryComponent",
    "EmployeeSalaryStructure",
    "ComponentType",
    "PayrollRun",
    "EmployeePayroll",
    "PayrollDetail",
    "PayrollStatus",
    "PaymentStatus",
]
