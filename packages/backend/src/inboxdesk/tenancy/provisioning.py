"""Tenant provisioning — creates the rows ScopeResolver looks for.

Learn: A principal that resolves to ScopeNotFound is signed in but has no
Account (and, for organization members, no Workspace) yet. Provisioning is
idempotent: two concurrent first requests may both try to insert, the unique
index rejects the loser, and the loser re-reads the winner's row.
"""

from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from inboxdesk.db.models import Account, Workspace
from inboxdesk.tenancy.scope import Principal

logger = structlog.get_logger()


class TenantService:
    """Idempotent creation of workspaces and accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def ensure_account(
        self, external_principal_id: str, email: Optional[str] = None
    ) -> Account:
        existing = await self._account(external_principal_id)
        if existing:
            return existing

        account = Account(external_principal_id=external_principal_id, email=email)
        self.db.add(account)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info(
                "inboxdesk.account_insert_raced",
                principal_id=external_principal_id,
            )
            return await self._account(external_principal_id)

        logger.info(
            "inboxdesk.account_provisioned",
            principal_id=external_principal_id,
            account_id=str(account.id),
        )
        return account

    async def ensure_workspace(self, external_org_id: str) -> Workspace:
        existing = await self._workspace(external_org_id)
        if existing:
            return existing

        workspace = Workspace(external_org_id=external_org_id)
        self.db.add(workspace)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info("inboxdesk.workspace_insert_raced", org_id=external_org_id)
            return await self._workspace(external_org_id)

        logger.info(
            "inboxdesk.workspace_provisioned",
            org_id=external_org_id,
            workspace_id=str(workspace.id),
        )
        return workspace

    async def provision(
        self, principal: Principal, email: Optional[str] = None
    ) -> None:
        """Make sure the principal (and its organization) resolve to a scope."""
        await self.ensure_account(principal.principal_id, email=email)
        if principal.organization_id:
            await self.ensure_workspace(principal.organization_id)

    async def _account(self, external_principal_id: str) -> Optional[Account]:
        result = await self.db.execute(
            select(Account).where(
                Account.external_principal_id == external_principal_id
            )
        )
        return result.scalars().first()

    async def _workspace(self, external_org_id: str) -> Optional[Workspace]:
        result = await self.db.execute(
            select(Workspace).where(Workspace.external_org_id == external_org_id)
        )
        return result.scalars().first()
