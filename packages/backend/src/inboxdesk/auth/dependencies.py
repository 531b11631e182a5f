"""FastAPI auth and tenant-scope dependencies.

Learn: These are used as Depends() in route handlers. The chain is

    Authorization header → CurrentIdentity (401 if missing/invalid)
                         → Scope          (403 if unprovisioned,
                                           503 if the store is unavailable)

401 and 403 are deliberately different: a 403 here means "signed in, run
provisioning", never "sign in again".
"""

from typing import Optional

from fastapi import Depends, HTTPException, Header
from sqlalchemy.ext.asyncio import AsyncSession

from inboxdesk.auth.jwt import TokenError, verify_session_token
from inboxdesk.config import settings
from inboxdesk.db.engine import get_db
from inboxdesk.tenancy import (
    Principal,
    Scope,
    ScopeLookupFailed,
    ScopeNotFound,
    ScopeResolver,
)


class CurrentIdentity:
    """The authenticated caller, as the identity provider describes it."""

    def __init__(
        self,
        principal_id: str,
        org_id: Optional[str] = None,
        email: Optional[str] = None,
    ):
        self.principal_id = principal_id
        self.org_id = org_id
        self.email = email

    @property
    def principal(self) -> Principal:
        return Principal(principal_id=self.principal_id, organization_id=self.org_id)


async def get_current_user(
    authorization: Optional[str] = Header(None),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no auth)."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = verify_session_token(authorization[7:])
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentIdentity(
        principal_id=payload["sub"],
        org_id=payload.get("org_id"),
        email=payload.get("email"),
    )


async def get_scope(
    identity: CurrentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Scope:
    """Resolve the caller's tenant scope, fresh for every request."""
    resolver = ScopeResolver(db, timeout_seconds=settings.scope_lookup_timeout_seconds)
    try:
        return await resolver.resolve(identity.principal)
    except ScopeNotFound as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ScopeLookupFailed as e:
        raise HTTPException(
            status_code=503,
            detail=str(e),
            headers={"Retry-After": "1"},
        )
