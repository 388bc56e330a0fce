"""Authorization gate for protected routes.

The session token is taken from the ``token`` cookie, then a ``token`` field
in a JSON body, then an ``Authorization: Bearer`` header; the first one
present wins. The gate checks signature and expiry and, when a route asks
for roles, requires an exact role match. Roles are flat: an Administrator
does not pass an Instructor-only check.
"""

import json
import logging
from datetime import datetime
from typing import Iterable, Optional

from fastapi import Depends, Request
from starlette.concurrency import run_in_threadpool

import config
from core.clock import Clock
from core.dependencies import UserManagerDep, get_clock
from core.exceptions import AccessDeniedError, InvalidTokenError, MissingTokenError
from core.security import decode_access_token
from schemas.user import Identity, Role

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


async def _token_from_body(request: Request) -> Optional[str]:
    if "application/json" not in request.headers.get("content-type", ""):
        return None
    body = await request.body()
    if not body:
        return None
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    if isinstance(payload, dict):
        token = payload.get("token")
        if isinstance(token, str) and token:
            return token
    return None


def _token_from_header(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.lower().startswith(BEARER_PREFIX):
        token = header[len(BEARER_PREFIX):].strip()
        return token or None
    return None


def check_roles(identity: Identity, required_roles: Iterable[Role]) -> None:
    """Raise AccessDeniedError unless the role is one of required_roles.

    An empty required_roles admits every role.
    """
    allowed = list(required_roles)
    if allowed and identity.role not in allowed:
        logger.warning(
            "Access denied for %s: role %s", identity.email, identity.role.value
        )
        raise AccessDeniedError(
            f"This route is restricted to {', '.join(role.value for role in allowed)}"
        )


async def extract_token(request: Request) -> Optional[str]:
    """Find the session token on a request, or None."""
    token = request.cookies.get(config.TOKEN_COOKIE_NAME)
    if token:
        return token
    token = await _token_from_body(request)
    if token:
        return token
    return _token_from_header(request)


def authorize(
    token: Optional[str],
    required_roles: Iterable[Role] = (),
    now: Optional[datetime] = None,
) -> Identity:
    """Validate a session token and check role membership.

    Args:
        token: Presented session token.
        required_roles: Roles allowed through. Empty means any
            authenticated identity.
        now: Time the token expiry is checked against.

    Returns:
        Identity decoded from the token.

    Raises:
        MissingTokenError: If no token was presented.
        InvalidTokenError: If the token is malformed, forged or expired.
        AccessDeniedError: If the identity's role is not in required_roles.
    """
    if not token:
        raise MissingTokenError()
    identity = decode_access_token(token, now=now)
    check_roles(identity, required_roles)
    return identity


async def get_current_identity(
    request: Request,
    user_manager: UserManagerDep,
    clock: Clock = Depends(get_clock),
) -> Identity:
    """Authenticate a request and attach the identity to ``request.state``.

    With ``ENFORCE_SINGLE_SESSION`` on, a token that is no longer the one
    stored on the user (replaced by a later login, cleared by logout or a
    password reset) is rejected before its own expiry. That lookup runs in
    the threadpool, off the event loop.
    """
    token = await extract_token(request)
    identity = authorize(token, now=clock())
    if config.ENFORCE_SINGLE_SESSION:
        user = await run_in_threadpool(user_manager.get_user_by_id, identity.user_id)
        if user is None or user.token != token:
            raise InvalidTokenError("Session is no longer active")
    request.state.identity = identity
    return identity


def require_roles(*roles: Role):
    """Build a dependency that admits only the given roles.

    Usage:
        @router.post("/courses", dependencies=[Depends(require_roles(Role.INSTRUCTOR))])
    """
    allowed = tuple(roles)

    def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        check_roles(identity, allowed)
        return identity

    return dependency


is_administrator = require_roles(Role.ADMINISTRATOR)
is_instructor = require_roles(Role.INSTRUCTOR)
is_learner = require_roles(Role.LEARNER)
