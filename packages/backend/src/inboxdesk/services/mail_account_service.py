"""Mail account service — scoped mailbox queries and credential storage.

Learn: Every query here goes through apply_scope(). A mailbox id that
belongs to another tenant behaves exactly like a missing one.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from inboxdesk.crypto import EMPTY_MARKER, SecretCodec
from inboxdesk.db.models import MailAccount
from inboxdesk.schemas.mail_account import MailAccountRead
from inboxdesk.tenancy import Scope, apply_scope

logger = structlog.get_logger()


class MailAccountService:
    """Business logic for connected mailboxes."""

    def __init__(self, db: AsyncSession, codec: SecretCodec):
        self.db = db
        self.codec = codec

    async def list_accounts(self, scope: Scope) -> list[MailAccount]:
        stmt = apply_scope(select(MailAccount), MailAccount, scope)
        result = await self.db.execute(stmt.order_by(MailAccount.created_at))
        return list(result.scalars().all())

    async def get_account(
        self, scope: Scope, mail_account_id: uuid.UUID
    ) -> Optional[MailAccount]:
        stmt = apply_scope(
            select(MailAccount).where(MailAccount.id == mail_account_id),
            MailAccount,
            scope,
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def create_forwarding_mailbox(
        self, scope: Scope, owner_id: uuid.UUID, email_address: str
    ) -> MailAccount:
        """Add a forwarding mailbox to the caller's tenant.

        No credentials exist yet, so every secret column holds the empty
        marker until SMTP settings are saved.
        """
        mail_account = MailAccount(
            user_id=owner_id,
            workspace_id=scope.workspace_id,
            provider="smtp",
            email_address=email_address,
            refresh_token_enc=EMPTY_MARKER,
            smtp_username_enc=EMPTY_MARKER,
            smtp_password_enc=EMPTY_MARKER,
            smtp_status="inactive",
        )
        self.db.add(mail_account)
        await self.db.commit()
        logger.info(
            "inboxdesk.forwarding_mailbox_created",
            mail_account_id=str(mail_account.id),
            scope=scope.kind,
        )
        return mail_account

    async def delete_account(self, scope: Scope, mail_account_id: uuid.UUID) -> bool:
        """Delete a mailbox in the caller's scope. False if none matched."""
        stmt = apply_scope(
            delete(MailAccount).where(MailAccount.id == mail_account_id),
            MailAccount,
            scope,
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        deleted = result.rowcount > 0
        if deleted:
            logger.info(
                "inboxdesk.mail_account_deleted",
                mail_account_id=str(mail_account_id),
                scope=scope.kind,
            )
        return deleted

    async def update_smtp_settings(
        self,
        mail_account: MailAccount,
        host: str,
        port: int,
        secure: bool,
        username: str,
        password: str,
    ) -> MailAccount:
        """Store SMTP settings; credentials are always written canonically."""
        mail_account.smtp_host = host
        mail_account.smtp_port = port
        mail_account.smtp_secure = secure
        mail_account.smtp_username_enc = self.codec.encode(username)
        mail_account.smtp_password_enc = self.codec.encode(password)
        mail_account.smtp_status = "inactive"
        await self.db.commit()
        logger.info(
            "inboxdesk.smtp_settings_updated",
            mail_account_id=str(mail_account.id),
            host=host,
            port=port,
        )
        return mail_account

    def smtp_credentials(self, mail_account: MailAccount) -> Optional[tuple[str, str]]:
        """Decoded (username, password), or None if either is unusable."""
        username = self.codec.decode(mail_account.smtp_username_enc)
        password = self.codec.decode(mail_account.smtp_password_enc)
        if username is None or password is None:
            return None
        return username, password

    def to_read(self, mail_account: MailAccount) -> MailAccountRead:
        return MailAccountRead(
            id=mail_account.id,
            provider=mail_account.provider,
            email_address=mail_account.email_address,
            workspace_id=mail_account.workspace_id,
            smtp_host=mail_account.smtp_host,
            smtp_port=mail_account.smtp_port,
            smtp_secure=mail_account.smtp_secure,
            smtp_status=mail_account.smtp_status,
            has_refresh_token=self.codec.decode(mail_account.refresh_token_enc) is not None,
            has_smtp_credentials=self.smtp_credentials(mail_account) is not None,
            created_at=mail_account.created_at,
        )
