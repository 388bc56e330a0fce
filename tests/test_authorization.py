import asyncio
from datetime import timedelta

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient
from jose import jwt

import config
from core.authorization import (
    authorize,
    get_current_identity,
    is_administrator,
    is_instructor,
    is_learner,
    require_roles,
)
from core.clock import utc_now
from core.database import get_db
from core.error_handlers import register_error_handlers
from core.exceptions import AccessDeniedError, InvalidTokenError, MissingTokenError
from core.security import create_access_token
from schemas.user import Identity, Role
from utils.user_manager import UserManager


def _token(email: str = "a@x.com", role: Role = Role.LEARNER, **kwargs) -> str:
    return create_access_token(Identity(user_id=f"id-{email}", email=email, role=role), **kwargs)


def test_authorize_without_roles_accepts_any_valid_token() -> None:
    identity = authorize(_token(role=Role.ADMINISTRATOR))

    assert identity.role == Role.ADMINISTRATOR
    assert identity.email == "a@x.com"


def test_learner_passes_learner_check() -> None:
    assert authorize(_token(), [Role.LEARNER]).role == Role.LEARNER


def test_learner_denied_on_instructor_route() -> None:
    with pytest.raises(AccessDeniedError):
        authorize(_token(role=Role.LEARNER), [Role.INSTRUCTOR])


def test_administrator_is_not_implicitly_an_instructor() -> None:
    with pytest.raises(AccessDeniedError):
        authorize(_token(role=Role.ADMINISTRATOR), [Role.INSTRUCTOR])


def test_any_listed_role_passes() -> None:
    token = _token(role=Role.INSTRUCTOR)

    assert authorize(token, [Role.ADMINISTRATOR, Role.INSTRUCTOR]).role == Role.INSTRUCTOR


@pytest.mark.parametrize("token", [None, ""])
def test_missing_token(token) -> None:
    with pytest.raises(MissingTokenError):
        authorize(token)


def test_garbage_token() -> None:
    with pytest.raises(InvalidTokenError):
        authorize("not-a-jwt")


def test_token_signed_with_another_key() -> None:
    forged = jwt.encode(
        {"sub": "x", "email": "a@x.com", "role": "Administrator"},
        "some-other-key",
        algorithm=config.JWT_ALGORITHM,
    )

    with pytest.raises(InvalidTokenError):
        authorize(forged)


def test_token_with_unknown_role() -> None:
    token = jwt.encode(
        {"sub": "x", "email": "a@x.com", "role": "Superuser", "exp": utc_now() + timedelta(hours=1)},
        config.JWT_SECRET_KEY,
        algorithm=config.JWT_ALGORITHM,
    )

    with pytest.raises(InvalidTokenError):
        authorize(token)


def test_token_without_expiry() -> None:
    token = jwt.encode(
        {"sub": "x", "email": "a@x.com", "role": "Learner"},
        config.JWT_SECRET_KEY,
        algorithm=config.JWT_ALGORITHM,
    )

    with pytest.raises(InvalidTokenError):
        authorize(token)


def test_expired_token_is_rejected_before_role_check() -> None:
    token = _token(now=utc_now() - timedelta(minutes=61), expires_delta=timedelta(hours=1))

    with pytest.raises(InvalidTokenError):
        authorize(token, [Role.INSTRUCTOR])


def test_expiry_follows_the_given_clock() -> None:
    issued = utc_now()
    token = _token(now=issued, expires_delta=timedelta(hours=1))

    assert authorize(token, now=issued + timedelta(minutes=59)).email == "a@x.com"
    with pytest.raises(InvalidTokenError):
        authorize(token, now=issued + timedelta(minutes=61))


@pytest.fixture()
def gated_client(session_factory):
    app = FastAPI()
    register_error_handlers(app)

    @app.post("/whoami")
    def whoami(identity: Identity = Depends(get_current_identity)) -> dict:
        return {"email": identity.email}

    @app.get("/state", dependencies=[Depends(get_current_identity)])
    def state(request: Request) -> dict:
        return {"email": request.state.identity.email}

    @app.post("/courses", dependencies=[Depends(is_instructor)])
    def create_course() -> dict:
        return {"ok": True}

    @app.post("/admin", dependencies=[Depends(is_administrator)])
    def admin_only() -> dict:
        return {"ok": True}

    @app.post("/enroll", dependencies=[Depends(is_learner)])
    def enroll() -> dict:
        return {"ok": True}

    @app.post("/staff")
    def staff(identity: Identity = Depends(require_roles(Role.ADMINISTRATOR, Role.INSTRUCTOR))) -> dict:
        return {"role": identity.role.value}

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def test_cookie_wins_over_body_and_header(gated_client) -> None:
    gated_client.cookies.set(config.TOKEN_COOKIE_NAME, _token("cookie@x.com"))

    response = gated_client.post(
        "/whoami",
        json={"token": _token("body@x.com")},
        headers={"Authorization": f"Bearer {_token('header@x.com')}"},
    )

    assert response.json() == {"email": "cookie@x.com"}


def test_body_wins_over_header(gated_client) -> None:
    response = gated_client.post(
        "/whoami",
        json={"token": _token("body@x.com")},
        headers={"Authorization": f"Bearer {_token('header@x.com')}"},
    )

    assert response.json() == {"email": "body@x.com"}


def test_bearer_header_alone(gated_client) -> None:
    response = gated_client.post(
        "/whoami", headers={"Authorization": f"Bearer {_token('header@x.com')}"}
    )

    assert response.json() == {"email": "header@x.com"}


def test_gate_without_token_is_unauthorized(gated_client) -> None:
    response = gated_client.post("/whoami")

    assert response.status_code == 401
    assert response.json()["success"] is False
    assert response.json()["error"] == "MissingToken"


def test_gate_with_expired_token_is_unauthorized(gated_client) -> None:
    expired = _token(now=utc_now() - timedelta(minutes=61), expires_delta=timedelta(hours=1))

    response = gated_client.post("/whoami", headers={"Authorization": f"Bearer {expired}"})

    assert response.status_code == 401
    assert response.json()["error"] == "InvalidToken"


@pytest.mark.parametrize(
    "path,role,expected",
    [
        ("/courses", Role.INSTRUCTOR, 200),
        ("/courses", Role.LEARNER, 403),
        ("/courses", Role.ADMINISTRATOR, 403),
        ("/admin", Role.ADMINISTRATOR, 200),
        ("/admin", Role.INSTRUCTOR, 403),
        ("/enroll", Role.LEARNER, 200),
        ("/enroll", Role.INSTRUCTOR, 403),
        ("/staff", Role.INSTRUCTOR, 200),
        ("/staff", Role.LEARNER, 403),
    ],
)
def test_role_gates(gated_client, path, role, expected) -> None:
    token = _token(role=role)

    response = gated_client.post(path, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == expected
    if expected == 403:
        assert response.json()["error"] == "AccessDenied"


def test_single_session_rejects_replaced_token(
    gated_client, register, login_manager, clock, monkeypatch
) -> None:
    monkeypatch.setattr(config, "ENFORCE_SINGLE_SESSION", True)
    register("a@x.com")
    first = login_manager.login("a@x.com", "s3cret-pass").token
    clock.advance(5)
    second = login_manager.login("a@x.com", "s3cret-pass").token

    stale = gated_client.post("/whoami", headers={"Authorization": f"Bearer {first}"})
    current = gated_client.post("/whoami", headers={"Authorization": f"Bearer {second}"})

    assert stale.status_code == 401
    assert current.status_code == 200


def test_replaced_token_still_valid_without_single_session(
    gated_client, register, login_manager, clock
) -> None:
    register("a@x.com")
    first = login_manager.login("a@x.com", "s3cret-pass").token
    clock.advance(5)
    login_manager.login("a@x.com", "s3cret-pass")

    response = gated_client.post("/whoami", headers={"Authorization": f"Bearer {first}"})

    assert response.status_code == 200


def test_identity_is_attached_to_request_state(gated_client) -> None:
    token = _token("state@x.com")

    response = gated_client.get("/state", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json() == {"email": "state@x.com"}


def test_single_session_lookup_runs_off_the_event_loop(
    gated_client, register, login_manager, monkeypatch
) -> None:
    monkeypatch.setattr(config, "ENFORCE_SINGLE_SESSION", True)
    register("a@x.com")
    token = login_manager.login("a@x.com", "s3cret-pass").token
    lookups = []
    original = UserManager.get_user_by_id

    def spy(self, user_id):
        try:
            asyncio.get_running_loop()
            lookups.append("event-loop")
        except RuntimeError:
            lookups.append("worker-thread")
        return original(self, user_id)

    monkeypatch.setattr(UserManager, "get_user_by_id", spy)

    response = gated_client.post("/whoami", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert lookups == ["worker-thread"]
