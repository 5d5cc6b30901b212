"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timedelta
from typing import Generator, List, Tuple
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from loan_origination.api.main import create_app
from loan_origination.api.dependencies import get_messaging_client
from loan_origination.domain.exceptions import ExternalDeliveryFailedError
from loan_origination.infrastructure.database.models import Base
from loan_origination.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


class FakeMessaging:
    """Records outbound messages instead of calling the gateway"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.texts: List[Tuple[str, str]] = []
        self.templates: List[Tuple[str, str, List[str]]] = []

    def send_text(self, destination: str, text: str) -> None:
        if self.fail:
            raise ExternalDeliveryFailedError("Messaging gateway error: 503", destination)
        self.texts.append((destination, text))

    def send_template(self, destination: str, template_name: str, params: List[str]) -> None:
        if self.fail:
            raise ExternalDeliveryFailedError("Messaging gateway error: 503", destination)
        self.templates.append((destination, template_name, list(params)))

    @property
    def last_pin(self) -> str:
        return self.templates[-1][2][0]


class FakeClock:
    """Controllable clock; starts at a fixed instant and only moves when told to"""

    def __init__(self, start: datetime = datetime(2025, 3, 3, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def messaging() -> FakeMessaging:
    return FakeMessaging()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client(db: Session, messaging: FakeMessaging) -> TestClient:
    """Create FastAPI test client with test database and recorded messaging"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_messaging_client] = lambda: messaging
    return TestClient(app)


@pytest.fixture
def session_factory(db: Session) -> sessionmaker:
    """Opens extra sessions on the test database, e.g. to act as a second channel"""
    return TestingSessionLocal
