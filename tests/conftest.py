import os
import tempfile

# CRITICAL: Set environment variables BEFORE any brokerage imports
# These must be set before brokerage.config.settings is loaded
_TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "test_brokerage.db")
os.environ["SECRET_KEY"] = "test-secret-key-1234567890"
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{_TEST_DB_PATH}"
os.environ["ENVIRONMENT"] = "test"
os.environ["API_V1_STR"] = "/api"  # Ensure /api prefix is used in tests

import pytest
from sqlalchemy.orm import sessionmaker

# Now import brokerage modules - they will use the test DATABASE_URL
from brokerage.api import deps
from brokerage.database import Base, get_db, engine as app_engine
from brokerage.main import app
from brokerage.models.domain import Department, RoleName

# Use the same engine that the app uses
TEST_ENGINE = app_engine

TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=TEST_ENGINE, future=True
)


def override_get_db():
    """Test database session that uses the test engine."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# Override the ORIGINAL function from the database module.
app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function", autouse=True)
def setup_test_database():
    """
    Fresh schema for every test; test-specific dependency overrides are dropped afterwards.
    """
    original_overrides = dict(app.dependency_overrides)

    Base.metadata.drop_all(bind=TEST_ENGINE)
    Base.metadata.create_all(bind=TEST_ENGINE)

    yield

    app.dependency_overrides.clear()
    app.dependency_overrides.update(original_overrides)

    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db_session():
    """Database session for direct use in tests."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class StubUser:
    def __init__(
        self,
        *,
        department: Department = Department.marine,
        role: RoleName = RoleName.staff,
        user_id: int = 1,
    ):
        self.id = user_id
        self.email = f"{role.value}.{department.name}@test.com"
        self.name = "Stub"
        self.active = True
        self.role = role
        self.department = department


@pytest.fixture
def login_as():
    """Authenticate every request as a stub user of the given department and role."""

    def _login(department: Department = Department.marine, role: RoleName = RoleName.staff) -> StubUser:
        user = StubUser(department=department, role=role)
        app.dependency_overrides[deps.get_current_user] = lambda: user
        return user

    return _login
