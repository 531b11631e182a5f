"""Scope API — inspect and provision the caller's tenant.

Learn: GET /scope is what the dashboard calls right after sign-in. A 403
tells it to run POST /scope/provision, which creates the missing Account
(and Workspace, for organization members) and returns the new scope.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from inboxdesk.auth.dependencies import CurrentIdentity, get_current_user, get_scope
from inboxdesk.config import settings
from inboxdesk.db.engine import get_db
from inboxdesk.schemas.mail_account import ScopeRead
from inboxdesk.tenancy import Scope, ScopeLookupFailed, ScopeResolver
from inboxdesk.tenancy.provisioning import TenantService

router = APIRouter(prefix="/scope")


def _read(scope: Scope) -> ScopeRead:
    return ScopeRead(
        kind=scope.kind,
        workspace_id=scope.workspace_id,
        account_id=scope.account_id,
    )


@router.get("", response_model=ScopeRead)
async def current_scope(scope: Scope = Depends(get_scope)):
    return _read(scope)


@router.post("/provision", response_model=ScopeRead)
async def provision_scope(
    identity: CurrentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create the caller's tenant rows if missing. Idempotent."""
    await TenantService(db).provision(identity.principal, email=identity.email)
    resolver = ScopeResolver(db, timeout_seconds=settings.scope_lookup_timeout_seconds)
    try:
        scope = await resolver.resolve(identity.principal)
    except ScopeLookupFailed as e:
        raise HTTPException(
            status_code=503, detail=str(e), headers={"Retry-After": "1"}
        )
    return _read(scope)
