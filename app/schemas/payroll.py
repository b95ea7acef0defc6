from pydantic import BaseModel, Field
from typing import List, Optional

class PayrollProcessRequest(BaseModel):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=9999)

class PayrollDetailResponse(BaseModel):
    id: int
    salary_component_id: int
    name: str
    type: str
    amount: float

class EmployeePayrollResponse(BaseModel):
    id: int
    payroll_run_id: int
    employee_id: int
    employee_name: Optional[str] = None
    working_days: float
    days_worked: float
    loss_of_pay_days: float
    total_earnings: float
    total_deductions: float
    net_salary: float
    payment_status: str
    details: List[PayrollDetailResponse] = []

class PayslipResponse(EmployeePayrollResponse):
    month: int
    year: int
    run_status: str

class PayrollRunResponse(BaseModel):
    id: int
    month: int
    year: int
    status: str
    processed_date: Optional[str] = None
    finalized_date: Optional[str] = None
    total_payout: float
    employee_count: int

class PayrollRunDetailResponse(PayrollRunResponse):
    employee_payrolls: List[EmployeePayrollResponse] = []
