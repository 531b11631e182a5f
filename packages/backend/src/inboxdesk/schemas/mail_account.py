"""Pydantic schemas for scope and mailbox endpoints.

Learn: Read schemas never carry secret values, only whether a usable
secret is stored. Decoding happens in the service layer.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ─── Scope ──────────────────────────────────────────────

class ScopeRead(BaseModel):
    kind: str
    workspace_id: Optional[uuid.UUID] = None
    account_id: Optional[uuid.UUID] = None


# ─── Mail accounts ──────────────────────────────────────

class MailAccountRead(BaseModel):
    id: uuid.UUID
    provider: str
    email_address: str
    workspace_id: Optional[uuid.UUID] = None
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_secure: bool = False
    smtp_status: str
    has_refresh_token: bool
    has_smtp_credentials: bool
    created_at: datetime


class SmtpSettingsUpdate(BaseModel):
    smtp_host: str = Field(..., min_length=1, max_length=255)
    smtp_port: int = Field(..., ge=1, le=65535)
    smtp_secure: bool = False
    smtp_username: str = Field(..., min_length=1)
    smtp_password: str = Field(..., min_length=1)


class ForwardingMailboxCreate(BaseModel):
    email_address: str = Field(..., min_length=3, max_length=255)
