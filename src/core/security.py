"""Session token minting and verification.

Tokens are HS256 JWTs carrying the user id, email and role. Only the
signature and the embedded expiry are checked here; nothing is looked up in
the Credential Store.
"""

from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt

import config
from core.clock import utc_now
from core.exceptions import InvalidTokenError
from schemas.user import Identity, Role


def create_access_token(
    identity: Identity,
    expires_delta: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> str:
    """Create a signed session token.

    Args:
        identity: Claims to embed.
        expires_delta: Optional lifetime, defaults to
            ``ACCESS_TOKEN_EXPIRE_MINUTES``.
        now: Issue time, defaults to the current UTC time.

    Returns:
        Encoded JWT token string.
    """
    issued_at = now or utc_now()
    if expires_delta is None:
        expires_delta = timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "sub": identity.user_id,
        "id": identity.user_id,
        "email": identity.email,
        "role": identity.role.value,
        "iat": issued_at,
        "exp": issued_at + expires_delta,
    }
    return jwt.encode(to_encode, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str, now: Optional[datetime] = None) -> Identity:
    """Verify a session token and return its claims.

    The signature is checked by jose; the expiry is checked here against
    ``now`` so that it follows the same clock as every other expiry rule.

    Args:
        token: Encoded JWT.
        now: Current time, defaults to the current UTC time.

    Returns:
        Identity decoded from the token.

    Raises:
        InvalidTokenError: If the token is malformed, has a bad signature,
            has expired or carries unusable claims.
    """
    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET_KEY,
            algorithms=[config.JWT_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError as e:
        raise InvalidTokenError() from e

    expires_at = payload.get("exp")
    if not isinstance(expires_at, (int, float)):
        raise InvalidTokenError()
    if (now or utc_now()).timestamp() > expires_at:
        raise InvalidTokenError("Token has expired")

    user_id = payload.get("sub")
    email = payload.get("email")
    role = payload.get("role")
    if not user_id or not email or role is None:
        raise InvalidTokenError()
    try:
        return Identity(user_id=user_id, email=email, role=Role(role))
    except ValueError as e:
        raise InvalidTokenError() from e
