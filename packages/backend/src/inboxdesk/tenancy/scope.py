"""Tenant scope resolution.

Learn: Every request is re-resolved to a Scope from the identity-provider
principal. The client never supplies a workspace or account id itself.

Resolution order:
1. The principal's organization owns a Workspace → workspace scope.
   (An organization may exist at the identity provider before its
   Workspace row is created; that case falls through.)
2. The principal has an Account → account scope.
3. Neither → ScopeNotFound: signed in, but not provisioned yet.

Store errors and timeouts raise ScopeLookupFailed instead, so callers
never mistake an outage for an unprovisioned tenant.

The resolver only builds scopes. Queries are filtered by the caller with
apply_scope(), which is the one place the tenant predicate is written.
"""

import asyncio
import uuid
from dataclasses import dataclass
from typing import Optional, TypeVar

import structlog
from sqlalchemy import Delete, Select, Update, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inboxdesk.db.models import Account, Workspace

logger = structlog.get_logger()


class ScopeNotFound(Exception):
    """Authenticated principal has neither a workspace nor an account."""


class ScopeLookupFailed(Exception):
    """The store could not be queried in time. Safe to retry."""


@dataclass(frozen=True)
class Principal:
    """Identity as reported by the identity provider."""

    principal_id: str
    organization_id: Optional[str] = None


@dataclass(frozen=True)
class Scope:
    """Resolved tenant context. Exactly one of the two ids is set."""

    workspace_id: Optional[uuid.UUID] = None
    account_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        if (self.workspace_id is None) == (self.account_id is None):
            raise ValueError("Scope needs exactly one of workspace_id or account_id")

    @classmethod
    def for_workspace(cls, workspace_id: uuid.UUID) -> "Scope":
        return cls(workspace_id=workspace_id)

    @classmethod
    def for_account(cls, account_id: uuid.UUID) -> "Scope":
        return cls(account_id=account_id)

    @property
    def kind(self) -> str:
        return "workspace" if self.workspace_id is not None else "account"


class ScopeResolver:
    """Maps a Principal to a Scope with at most two read-only lookups."""

    def __init__(self, db: AsyncSession, timeout_seconds: float = 5.0):
        self.db = db
        self.timeout_seconds = timeout_seconds

    async def resolve(self, principal: Principal) -> Scope:
        if principal.organization_id:
            workspace_id = await self._lookup(
                select(Workspace.id).where(
                    Workspace.external_org_id == principal.organization_id
                )
            )
            if workspace_id is not None:
                logger.debug(
                    "inboxdesk.scope_resolved",
                    kind="workspace",
                    principal_id=principal.principal_id,
                    workspace_id=str(workspace_id),
                )
                return Scope.for_workspace(workspace_id)

        account_id = await self._lookup(
            select(Account.id).where(
                Account.external_principal_id == principal.principal_id
            )
        )
        if account_id is not None:
            logger.debug(
                "inboxdesk.scope_resolved",
                kind="account",
                principal_id=principal.principal_id,
                account_id=str(account_id),
            )
            return Scope.for_account(account_id)

        logger.info(
            "inboxdesk.scope_not_found",
            principal_id=principal.principal_id,
            organization_id=principal.organization_id,
        )
        raise ScopeNotFound(
            f"No workspace or account provisioned for principal {principal.principal_id}"
        )

    async def _lookup(self, stmt: Select) -> Optional[uuid.UUID]:
        # Cancellation from the caller propagates untouched.
        try:
            result = await asyncio.wait_for(
                self.db.execute(stmt), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            logger.warning("inboxdesk.scope_lookup_timeout", timeout=self.timeout_seconds)
            raise ScopeLookupFailed("Tenant lookup timed out") from e
        except (SQLAlchemyError, OSError) as e:
            # The driver's connect call can fail with a bare OSError
            # (ConnectionRefusedError, socket.gaierror) that SQLAlchemy
            # does not wrap.
            logger.warning("inboxdesk.scope_lookup_failed", error=str(e))
            raise ScopeLookupFailed(f"Tenant lookup failed: {e}") from e
        return result.scalars().first()


ScopedStatement = TypeVar("ScopedStatement", Select, Update, Delete)


def apply_scope(
    stmt: ScopedStatement,
    model,
    scope: Scope,
    *,
    workspace_column: str = "workspace_id",
    user_column: str = "user_id",
) -> ScopedStatement:
    """Constrain a select, update or delete on a tenant-owned model to the caller's scope.

    Adds exactly one predicate: ``workspace_id = scope.workspace_id`` for
    workspace scopes, ``user_id = scope.account_id`` otherwise. Every query
    against a tenant-owned table must go through here; an unfiltered query
    is a cross-tenant leak.
    """
    if scope.workspace_id is not None:
        column_name, value = workspace_column, scope.workspace_id
    else:
        column_name, value = user_column, scope.account_id

    column = getattr(model, column_name, None)
    if column is None:
        raise ValueError(
            f"{model.__name__} has no {column_name!r} column; "
            f"cannot apply a {scope.kind} scope"
        )
    return stmt.where(column == value)
