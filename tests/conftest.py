import os
from datetime import datetime, timedelta
from typing import List

import pytest
import pytz

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("MAIL_BACKEND", "console")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app import app  # noqa: E402
from core.database import get_db  # noqa: E402
from core.dependencies import get_clock, get_mail_sender  # noqa: E402
from core.exceptions import MailDeliveryError  # noqa: E402
from models.base import Base  # noqa: E402
from schemas.user import SignupRequest  # noqa: E402
from utils.login_manager import LoginManager  # noqa: E402
from utils.mail_sender import DeliveryResult, MailSender  # noqa: E402
from utils.otp_manager import OtpManager  # noqa: E402
from utils.password_reset_manager import PasswordResetManager  # noqa: E402
from utils.registration_manager import RegistrationManager  # noqa: E402
from utils.user_manager import UserManager  # noqa: E402


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime.now(pytz.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class RecordingMailSender(MailSender):
    """Keeps every message instead of delivering it."""

    def __init__(self):
        self.sent: List[DeliveryResult] = []
        self.bodies: List[str] = []
        self.fail = False

    def send(self, to_address: str, subject: str, html_body: str) -> DeliveryResult:
        if self.fail:
            raise MailDeliveryError()
        result = DeliveryResult(to_address=to_address, subject=subject)
        self.sent.append(result)
        self.bodies.append(html_body)
        return result


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def mail() -> RecordingMailSender:
    return RecordingMailSender()


@pytest.fixture()
def user_manager(db_session, clock) -> UserManager:
    return UserManager(db_session, clock=clock)


@pytest.fixture()
def otp_manager(db_session, mail, clock) -> OtpManager:
    return OtpManager(db_session, mail, clock=clock)


@pytest.fixture()
def registration_manager(user_manager, otp_manager, mail) -> RegistrationManager:
    return RegistrationManager(user_manager, otp_manager, mail)


@pytest.fixture()
def login_manager(user_manager, mail, clock) -> LoginManager:
    return LoginManager(user_manager, mail, clock=clock)


@pytest.fixture()
def reset_manager(user_manager, mail, clock) -> PasswordResetManager:
    return PasswordResetManager(user_manager, mail, clock=clock)


def signup_request(email: str = "a@x.com", otp: str = "000000", **overrides) -> SignupRequest:
    payload = {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "email": email,
        "password": "s3cret-pass",
        "confirmPassword": "s3cret-pass",
        "accountType": "Learner",
        "otp": otp,
    }
    payload.update(overrides)
    return SignupRequest(**payload)


def issue_otp(otp_manager: OtpManager, email: str) -> str:
    otp_manager.request_otp(email)
    return otp_manager.latest_live_otp(email).otp


@pytest.fixture()
def register(otp_manager, registration_manager):
    """Register a user through the full OTP flow and return it."""

    def _register(email: str = "a@x.com", role: str = "Learner", password: str = "s3cret-pass"):
        code = issue_otp(otp_manager, email)
        user, _ = registration_manager.register(
            signup_request(
                email=email,
                otp=code,
                accountType=role,
                password=password,
                confirmPassword=password,
            )
        )
        return user

    return _register


@pytest.fixture()
def client(session_factory, clock, mail):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_mail_sender] = lambda: mail
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
