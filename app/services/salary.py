from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Protocol

from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.models.salary_component import ComponentType, EmployeeSalaryStructure, SalaryComponent


@dataclass(frozen=True)
class SalaryAssignment:
    component_id: int
    name: str
    component_type: ComponentType
    amount: Decimal
    prorates: bool


class SalaryStructureProvider(Protocol):
    def active_assignments(self, employee_id: int, as_of: date) -> List[SalaryAssignment]:
        ...


class DbSalaryStructureProvider:
    """
    Latest assignment per component with an effective date on or before `as_of`.
    Inactive components are dropped; malformed rows raise ValidationError so the
    payroll run that asked for them is rolled back.
    """

    def __init__(self, db: Session):
        self.db = db

    def active_assignments(self, employee_id: int, as_of: date) -> List[SalaryAssignment]:
        rows = self.db.query(EmployeeSalaryStructure, SalaryComponent).outerjoin(
            SalaryComponent, EmployeeSalaryStructure.salary_component_id == SalaryComponent.id
        ).filter(
            EmployeeSalaryStructure.employee_id == employee_id,
            EmployeeSalaryStructure.effective_date <= as_of
        ).order_by(
            EmployeeSalaryStructure.salary_component_id,
            EmployeeSalaryStructure.effective_date.desc(),
            EmployeeSalaryStructure.id.desc()
        ).all()

        latest = {}
        for structure, component in rows:
            if component is None:
                raise ValidationError(
                    f"Salary structure {structure.id} of employee {employee_id} "
                    f"references unknown component {structure.salary_component_id}"
                )
            latest.setdefault(component.id, (structure, component))

        assignments = []
        for structure, component in latest.values():
            if not component.is_active:
                continue
            try:
                component_type = ComponentType(component.component_type)
            except ValueError:
                raise ValidationError(
                    f"Salary component {component.id} has unknown type '{component.component_type}'"
                )
            if structure.amount is None or Decimal(structure.amount) < 0:
                raise ValidationError(
                    f"Salary structure {structure.id} of employee {employee_id} has an invalid amount"
                )
            assignments.append(SalaryAssignment(
                component_id=component.id,
                name=component.name,
                component_type=component_type,
                amount=Decimal(structure.amount),
                prorates=component.prorates
            ))
        return assignments
