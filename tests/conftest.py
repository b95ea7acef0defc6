import pytest
import os
from datetime import date
from decimal import Decimal
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SEED_DEFAULT_DATA"] = "false"

from app.database import Base, build_engine, get_db, init_db
from app.main import app
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite://"

@pytest.fixture(scope="function")
def engine():
    """Fresh schema per test so committed service transactions never leak between tests."""
    engine = build_engine(SQLALCHEMY_DATABASE_URL, poolclass=StaticPool)
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()

@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autoflush=False, bind=engine)

@pytest.fixture(scope="function")
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()

@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

# --- Factories ---

@pytest.fixture(scope="function")
def make_employee(db_session):
    from app.models.employee import Employee, EmploymentStatus

    def _make(full_name="Jane Doe", status=EmploymentStatus.ACTIVE.value):
        employee = Employee(full_name=full_name, employment_status=status)
        db_session.add(employee)
        db_session.commit()
        return employee
    return _make

@pytest.fixture(scope="function")
def make_leave_type(db_session):
    from app.models.leave_type import LeaveType

    def _make(name="Sick Leave", days=10, **kwargs):
        leave_type = LeaveType(name=name, default_days_per_year=days, **kwargs)
        db_session.add(leave_type)
        db_session.commit()
        return leave_type
    return _make

@pytest.fixture(scope="function")
def make_holiday(db_session):
    from app.models.public_holiday import PublicHoliday

    def _make(day: date, name="Holiday", **kwargs):
        holiday = PublicHoliday(name=name, date=day, **kwargs)
        db_session.add(holiday)
        db_session.commit()
        return holiday
    return _make

@pytest.fixture(scope="function")
def make_component(db_session):
    from app.models.salary_component import SalaryComponent

    def _make(name="Basic", component_type="earning", **kwargs):
        component = SalaryComponent(name=name, component_type=component_type, **kwargs)
        db_session.add(component)
        db_session.commit()
        return component
    return _make

@pytest.fixture(scope="function")
def assign_salary(db_session):
    from app.models.salary_component import EmployeeSalaryStructure

    def _assign(employee, component, amount, effective_date=date(2024, 1, 1)):
        structure = EmployeeSalaryStructure(
            employee_id=employee.id,
            salary_component_id=component.id,
            amount=Decimal(str(amount)),
            effective_date=effective_date
        )
        db_session.add(structure)
        db_session.commit()
        return structure
    return _assign

@pytest.fixture(scope="function")
def mark_attendance(db_session):
    from app.models.attendance import Attendance

    def _mark(employee, day: date, status="present"):
        record = Attendance(employee_id=employee.id, date=day, status=status)
        db_session.add(record)
        db_session.commit()
        return record
    return _mark
