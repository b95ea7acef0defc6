from typing import List, Optional, Protocol

from sqlalchemy.orm import Session

from app.models.employee import Employee, ACTIVE_STATUSES


class EmployeeDirectory(Protocol):
    def get_active(self, employee_id: int) -> Optional[Employee]:
        ...

    def list_active(self) -> List[Employee]:
        ...


class DbEmployeeDirectory:
    def __init__(self, db: Session):
        self.db = db

    def get_active(self, employee_id: int) -> Optional[Employee]:
        return self.db.query(Employee).filter(
            Employee.id == employee_id,
            Employee.employment_status.in_(ACTIVE_STATUSES)
        ).first()

    def list_active(self) -> List[Employee]:
        return self.db.query(Employee).filter(
            Employee.employment_status.in_(ACTIVE_STATUSES)
        ).order_by(Employee.id).all()
