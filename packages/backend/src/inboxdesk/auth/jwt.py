"""Identity-provider session token verification.

Learn: Users sign in at the external identity provider, which issues a
signed session JWT. The claims we rely on:
- sub: stable principal id
- org_id: active organization, absent for users outside any organization
- email: primary address, used when provisioning an account

create_session_token mints the same shape for local development and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from inboxdesk.config import settings


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_session_token(
    principal_id: str,
    org_id: Optional[str] = None,
    email: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a session token shaped like the identity provider's."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": principal_id,
        "iat": now,
        "exp": now + timedelta(
            minutes=expires_minutes or settings.session_token_expire_minutes
        ),
    }
    if org_id:
        payload["org_id"] = org_id
    if email:
        payload["email"] = email
    return jwt.encode(
        payload,
        settings.identity_jwt_secret,
        algorithm=settings.identity_jwt_algorithm,
    )


def verify_session_token(token: str) -> dict:
    """Verify and decode a session token.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    try:
        payload = jwt.decode(
            token,
            settings.identity_jwt_secret,
            algorithms=[settings.identity_jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")
    if not payload["sub"]:
        raise TokenError("Invalid token: empty subject")
    return payload
