from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Text
from sqlalchemy.sql import func
from app.database import Base

class LeaveType(Base):
    """
    Leave entitlement definition (Sick Leave, Annual Leave, ...).
    Rows referenced by a balance are never edited in place; deactivation only
    blocks new balances and new requests.
    """
    __tablename__ = "leave_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    default_days_per_year = Column(Float, nullable=False)
    is_paid = Column(Boolean, default=True, nullable=False)
    requires_approval = Column(Boolean, default=True, nullable=False)
    max_consecutive_days = Column(Integer, nullable=True)
    allow_carry_forward = Column(Boolean, default=False, nullable=False)
    max_carry_forward_days = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
