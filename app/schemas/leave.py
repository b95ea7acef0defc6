from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import Optional

class LeaveTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    default_days_per_year: float = Field(..., ge=0)
    is_paid: bool = True
    requires_approval: bool = True
    max_consecutive_days: Optional[int] = Field(default=None, gt=0)
    allow_carry_forward: bool = False
    max_carry_forward_days: Optional[float] = Field(default=None, ge=0)

class LeaveTypeResponse(LeaveTypeCreate):
    id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)

class LeaveBalanceInitRequest(BaseModel):
    employee_id: int
    year: int = Field(..., ge=2000, le=9999)

class LeaveBalanceResponse(BaseModel):
    id: int
    employee_id: int
    leave_type_id: int
    year: int
    total_days: float
    used_days: float
    remaining_days: float
    carried_forward_days: float

    model_config = ConfigDict(from_attributes=True)

class LedgerEntryResponse(BaseModel):
    id: int
    entry_type: str
    amount: float
    leave_request_id: Optional[int] = None
    remaining_after: float
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class LeaveRequestCreate(BaseModel):
    employee_id: int
    leave_type_id: int
    start_date: date
    end_date: date
    reason: Optional[str] = None

class LeaveRequestResponse(BaseModel):
    id: int
    employee_id: int
    leave_type_id: int
    start_date: date
    end_date: date
    days: float
    status: str
    reason: Optional[str] = None
    approver_comments: Optional[str] = None
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class LeaveDecisionRequest(BaseModel):
    comments: Optional[str] = None

class CalculatedDaysResponse(BaseModel):
    start_date: date
    end_date: date
    days: float
