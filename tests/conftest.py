import os
import re
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("PASSWORD_RESET_MIN_RESPONSE_MS", "0")
os.environ.setdefault("RUN_SESSION_SWEEPER", "false")
os.environ.setdefault("DB_INIT_MODE", "off")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "internship_auth_tests.log"))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from internship_auth.core.database import Base
from internship_auth.schemas.user import UserCreate, UserRole
from internship_auth.services import password_service as password_module
from internship_auth.services.email_service import email_service
from internship_auth.services.rate_limiter import rate_limiter
from internship_auth.services.user_service import user_service

PASSWORD = "Secret123"
_RESET_TOKEN = re.compile(r"token=([0-9a-f]{64})")


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def delivery_db(monkeypatch, session_factory):
    """Background email delivery opens its sessions on the test database."""
    monkeypatch.setattr(password_module, "SessionLocal", session_factory)


class TaskQueue:
    """Stands in for BackgroundTasks; run() executes what a response would trigger."""

    def __init__(self):
        self.tasks = []

    def add_task(self, func, *args, **kwargs):
        self.tasks.append((func, args, kwargs))

    def run(self):
        pending, self.tasks = self.tasks, []
        return [func(*args, **kwargs) for func, args, kwargs in pending]


@pytest.fixture
def tasks():
    return TaskQueue()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """Capture outgoing email instead of talking to SMTP."""
    sent = []

    def fake_send(to, subject, html_body, text_body=None):
        sent.append({"to": to, "subject": subject, "html": html_body, "text": text_body})
        return True

    monkeypatch.setattr(email_service, "send", fake_send)
    rate_limiter.reset()
    return sent


@pytest.fixture
def make_user(db):
    def _make(email="student@example.com", password=PASSWORD, role=UserRole.STUDENT, name="Test Student"):
        return user_service.create_user(db, UserCreate(name=name, email=email, password=password, role=role))

    return _make


@pytest.fixture
def last_reset_token(outbox):
    """Extract the plaintext reset secret from the most recent email."""
    def _extract() -> str:
        match = _RESET_TOKEN.search(outbox[-1]["text"])
        assert match, "reset email carries no token"
        return match.group(1)

    return _extract
