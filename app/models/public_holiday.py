from sqlalchemy import Column, Integer, String, Date, Boolean, Text
from app.database import Base

class PublicHoliday(Base):
    __tablename__ = "public_holidays"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    date = Column(Date, nullable=False, index=True)
    description = Column(Text, nullable=True)
    is_optional = Column(Boolean, default=False, nullable=False)  # optional holidays are still working days
    is_active = Column(Boolean, default=True, nullable=False)
