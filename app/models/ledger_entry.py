from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime
from sqlalchemy.sql import func
from app.database import Base
import enum

class LedgerEntryType(str, enum.Enum):
    INITIALIZE = "initialize"
    DEBIT = "debit"
    CREDIT = "credit"

class LeaveLedgerEntry(Base):
    """
    Append-only movement log for leave balances.
    Written in the same transaction as the balance change it records.
    """
    __tablename__ = "leave_ledger_entries"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False)
    year = Column(Integer, nullable=False)
    entry_type = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=True)
    remaining_after = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
