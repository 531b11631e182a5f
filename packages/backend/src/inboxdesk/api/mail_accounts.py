"""Mail account API routes.

Learn: Routes take the Scope dependency, never a tenant id from the
request. The service applies it to every query.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from inboxdesk.auth.dependencies import CurrentIdentity, get_current_user, get_scope
from inboxdesk.crypto import KeyUnavailable, SecretCodec, get_secret_codec
from inboxdesk.db.engine import get_db
from inboxdesk.schemas.mail_account import (
    ForwardingMailboxCreate,
    MailAccountRead,
    SmtpSettingsUpdate,
)
from inboxdesk.services.mail_account_service import MailAccountService
from inboxdesk.tenancy import Scope
from inboxdesk.tenancy.provisioning import TenantService

router = APIRouter(prefix="/mail-accounts")


def _svc(
    db: AsyncSession = Depends(get_db),
    codec: SecretCodec = Depends(get_secret_codec),
) -> MailAccountService:
    return MailAccountService(db, codec)


def _key_unavailable(e: KeyUnavailable) -> HTTPException:
    return HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=list[MailAccountRead])
async def list_mail_accounts(
    scope: Scope = Depends(get_scope),
    svc: MailAccountService = Depends(_svc),
):
    accounts = await svc.list_accounts(scope)
    try:
        return [svc.to_read(a) for a in accounts]
    except KeyUnavailable as e:
        raise _key_unavailable(e)


@router.put("/{mail_account_id}/smtp", response_model=MailAccountRead)
async def update_smtp_settings(
    mail_account_id: uuid.UUID,
    body: SmtpSettingsUpdate,
    scope: Scope = Depends(get_scope),
    svc: MailAccountService = Depends(_svc),
):
    mail_account = await svc.get_account(scope, mail_account_id)
    if not mail_account:
        raise HTTPException(status_code=404, detail="Mailbox not found")
    if mail_account.provider != "smtp":
        raise HTTPException(
            status_code=400,
            detail="SMTP settings are only supported for smtp mailboxes",
        )
    try:
        mail_account = await svc.update_smtp_settings(
            mail_account,
            host=body.smtp_host.strip(),
            port=body.smtp_port,
            secure=body.smtp_secure,
            username=body.smtp_username.strip(),
            password=body.smtp_password,
        )
        return svc.to_read(mail_account)
    except KeyUnavailable as e:
        raise _key_unavailable(e)


@router.post("/forwarding", response_model=MailAccountRead, status_code=201)
async def create_forwarding_mailbox(
    body: ForwardingMailboxCreate,
    scope: Scope = Depends(get_scope),
    identity: CurrentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    svc: MailAccountService = Depends(_svc),
):
    """Create a forwarding mailbox owned by the caller's tenant."""
    owner_id = scope.account_id
    if owner_id is None:
        # Workspace scope: the creator still needs an Account as row owner.
        owner = await TenantService(db).ensure_account(
            identity.principal_id, email=identity.email
        )
        owner_id = owner.id
    mail_account = await svc.create_forwarding_mailbox(
        scope, owner_id, body.email_address.strip()
    )
    try:
        return svc.to_read(mail_account)
    except KeyUnavailable as e:
        raise _key_unavailable(e)


@router.delete("/{mail_account_id}")
async def delete_mail_account(
    mail_account_id: uuid.UUID,
    scope: Scope = Depends(get_scope),
    svc: MailAccountService = Depends(_svc),
):
    """Disconnect a mailbox. Other tenants' mailboxes are reported as missing."""
    if not await svc.delete_account(scope, mail_account_id):
        raise HTTPException(status_code=404, detail="Mailbox not found")
    return {"deleted": True}
