from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from app.database import Base
import enum

class EmploymentStatus(str, enum.Enum):
    ACTIVE = "active"
    PROBATION = "probation"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"

# Employees in these states are processed by payroll and may hold leave balances
ACTIVE_STATUSES = (EmploymentStatus.ACTIVE.value, EmploymentStatus.PROBATION.value)

class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    employment_status = Column(String, default=EmploymentStatus.ACTIVE.value, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_active(self) -> bool:
        return self.employment_status in ACTIVE_STATUSES

    def __repr__(self):
        return f"<Employee {self.id}: {self.full_name}>"
