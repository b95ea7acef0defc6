import logging
from app.database import SessionLocal
from app.models.leave_type import LeaveType

logger = logging.getLogger(__name__)

DEFAULT_LEAVE_TYPES = [
    {"name": "Sick Leave", "default_days_per_year": 10, "description": "Medical leave"},
    {"name": "Annual Leave", "default_days_per_year": 15, "description": "Vacation"},
    {"name": "Casual Leave", "default_days_per_year": 5, "description": "Miscellaneous"},
]

def seed_default_leave_types(db) -> int:
    """Create the default leave types when none exist. Returns the number created."""
    if db.query(LeaveType).count() > 0:
        return 0
    for values in DEFAULT_LEAVE_TYPES:
        db.add(LeaveType(is_paid=True, is_active=True, **values))
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    return len(DEFAULT_LEAVE_TYPES)

def init_system_data():
    """
    Checks if the system needs initialization.
    If no leave type exists, creates the default catalogue.
    """
    db = SessionLocal()
    try:
        created = seed_default_leave_types(db)
        if created:
            logger.info(f"✓ Seeded {created} default leave types")
        else:
            logger.info("System initialization check: leave types already present.")
    finally:
        db.close()
