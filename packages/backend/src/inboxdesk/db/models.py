"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Alembic migrations mirror these models.

Key concepts:
- UUID primary keys via the portable Uuid type (native on Postgres,
  CHAR(32) on SQLite for local runs and tests)
- Tenant-owned tables carry both workspace_id and user_id; which one a
  query filters on is decided by the resolved Scope (see tenancy.scope)
- Secret columns end in _enc and hold SecretCodec output, never plaintext
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


# ══════════════════════════════════════════════════════════════
# Tenants: workspaces (organizations) and accounts (people)
# ══════════════════════════════════════════════════════════════


class Workspace(Base):
    """Tenant container shared by the members of one external organization.

    Learn: external_org_id stays nullable for workspaces created before
    organizations existed at the identity provider. When present it is
    unique, so an organization maps to at most one workspace.
    """

    __tablename__ = "workspaces"
    __table_args__ = (
        Index(
            "workspaces_external_org_id_unique_not_null",
            "external_org_id",
            unique=True,
            postgresql_where=text("external_org_id IS NOT NULL"),
            sqlite_where=text("external_org_id IS NOT NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    external_org_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class Account(Base):
    """Internal record for one identity-provider principal.

    Learn: Personal data (mailboxes connected before the user joined an
    organization) is owned by the account and filtered on user_id.
    """

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    external_principal_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    mail_accounts: Mapped[list["MailAccount"]] = relationship(back_populates="owner")


# ══════════════════════════════════════════════════════════════
# Tenant-owned data
# ══════════════════════════════════════════════════════════════


class MailAccount(Base):
    """A connected mailbox (Gmail, Outlook or forwarded SMTP).

    Learn: refresh_token_enc and the smtp_*_enc columns may hold any of
    the historical secret encodings. Read them through SecretCodec.decode,
    write them through SecretCodec.encode.
    """

    __tablename__ = "mail_accounts"
    __table_args__ = (
        Index("mail_accounts_workspace_id_idx", "workspace_id"),
        Index("mail_accounts_user_id_idx", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False
    )
    workspace_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("workspaces.id"), nullable=True
    )
    provider: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # gmail, outlook, smtp
    email_address: Mapped[str] = mapped_column(String(255), nullable=False)
    refresh_token_enc: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    smtp_host: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    smtp_port: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    smtp_secure: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    smtp_username_enc: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    smtp_password_enc: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    smtp_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="inactive"
    )  # inactive, active, error

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    owner: Mapped["Account"] = relationship(back_populates="mail_accounts")
