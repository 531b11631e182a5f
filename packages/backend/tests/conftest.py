"""Test fixtures — in-memory SQLite per test, real session tokens.

Learn: Each test gets its own in-memory database (aiosqlite + StaticPool so
every session sees the same connection), with the schema created from the
ORM models. The app's get_db is overridden to hand out that session, and
the secret codec is overridden with a codec built from a known passphrase.

Auth is NOT overridden: tests mint real session tokens with
create_session_token, so scope resolution runs exactly as in production.
"""

import os

os.environ.setdefault("INBOXDESK_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("INBOXDESK_ENCRYPTION_KEY", "test-passphrase")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from inboxdesk.auth.jwt import create_session_token
from inboxdesk.crypto import KeyMaterial, SecretCodec, get_secret_codec
from inboxdesk.db.engine import get_db
from inboxdesk.db.models import Account, Base, MailAccount, Workspace
from inboxdesk.main import app

TEST_PASSPHRASE = "test-passphrase"


@pytest.fixture()
def codec():
    return SecretCodec(KeyMaterial(passphrase=TEST_PASSPHRASE))


@pytest_asyncio.fixture()
async def db_session():
    """Fresh in-memory database with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session = AsyncSession(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest_asyncio.fixture()
async def client(db_session, codec):
    """HTTP client with get_db and the secret codec overridden."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_secret_codec] = lambda: codec

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    """Build Authorization headers for a principal (optionally in an org)."""

    def _headers(principal_id: str, org_id: str | None = None, email: str | None = None):
        token = create_session_token(principal_id, org_id=org_id, email=email)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture()
async def tenants(db_session):
    """Two tenants: a workspace for org "o9" and a personal account "p2".

    Principal "p1" has both an account and membership in "o9", so it
    resolves to the workspace.
    """
    workspace = Workspace(external_org_id="o9", name="Acme Support")
    p1 = Account(external_principal_id="p1", email="p1@example.com")
    p2 = Account(external_principal_id="p2", email="p2@example.com")
    db_session.add_all([workspace, p1, p2])
    await db_session.commit()
    return {"workspace": workspace, "p1": p1, "p2": p2}


@pytest_asyncio.fixture()
async def mailboxes(db_session, tenants, codec):
    """One SMTP mailbox per tenant plus a Gmail mailbox with a legacy token."""
    shared = MailAccount(
        user_id=tenants["p1"].id,
        workspace_id=tenants["workspace"].id,
        provider="smtp",
        email_address="support@acme.test",
        smtp_host="smtp.acme.test",
        smtp_port=587,
        smtp_username_enc=codec.encode("support@acme.test"),
        smtp_password_enc=codec.encode("workspace-pass"),
    )
    gmail = MailAccount(
        user_id=tenants["p1"].id,
        workspace_id=tenants["workspace"].id,
        provider="gmail",
        email_address="help@acme.test",
        # Legacy hex envelope around base64 of the token.
        refresh_token_enc="\\x" + "MS8vcmVmcmVzaA==".encode().hex(),
    )
    personal = MailAccount(
        user_id=tenants["p2"].id,
        workspace_id=None,
        provider="smtp",
        email_address="me@p2.test",
        smtp_password_enc="\\x",
    )
    db_session.add_all([shared, gmail, personal])
    await db_session.commit()
    return {"shared": shared, "gmail": gmail, "personal": personal}
