from sqlalchemy import Column, Integer, String, Boolean, Numeric, Date, ForeignKey
from sqlalchemy.orm import relationship
from app.database import Base
import enum

class ComponentType(str, enum.Enum):
    EARNING = "earning"
    DEDUCTION = "deduction"

class SalaryComponent(Base):
    __tablename__ = "salary_components"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    component_type = Column(String, nullable=False)  # Store enum value as string
    is_taxable = Column(Boolean, default=True, nullable=False)
    # None means the type default: earnings prorate, deductions do not
    is_prorated = Column(Boolean, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    @property
    def prorates(self) -> bool:
        if self.is_prorated is not None:
            return self.is_prorated
        return self.component_type == ComponentType.EARNING.value

class EmployeeSalaryStructure(Base):
    """Amount assigned to one employee for one component, effective from a date."""
    __tablename__ = "employee_salary_structures"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    salary_component_id = Column(Integer, ForeignKey("salary_components.id"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    effective_date = Column(Date, nullable=False)

    salary_component = relationship("SalaryComponent")
