from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base

class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_leave_balance_employee_type_year"),
        CheckConstraint("used_days >= 0", name="ck_leave_balance_used_non_negative"),
        CheckConstraint(
            "remaining_days = total_days + carried_forward_days - used_days",
            name="ck_leave_balance_conservation",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False, index=True)
    year = Column(Integer, nullable=False)
    total_days = Column(Float, nullable=False, default=0.0)
    used_days = Column(Float, nullable=False, default=0.0)
    remaining_days = Column(Float, nullable=False, default=0.0)
    carried_forward_days = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_updated = Column(DateTime(timezone=True), nullable=True)

    leave_type = relationship("LeaveType")
