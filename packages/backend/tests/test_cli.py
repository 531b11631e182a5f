"""CLI tests — secret maintenance and scope lookup commands.

Learn: Commands that touch the database run their own event loop, so these
tests are synchronous and point the CLI at a temporary SQLite file.
"""

import asyncio

import pytest
from click.testing import CliRunner
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from inboxdesk import log as log_module
from inboxdesk.auth.jwt import verify_session_token
from inboxdesk.cli.main import main
from inboxdesk.config import Settings
from inboxdesk.config import settings as cli_settings
from inboxdesk.crypto import SecretFormat
from inboxdesk.db import engine as db_engine
from inboxdesk.db.models import Account, Base, MailAccount, Workspace
from inboxdesk.log import configure_logging


@pytest.fixture()
def runner():
    return CliRunner()


@pytest.fixture()
def cli_db(tmp_path, monkeypatch):
    """A file-backed database the CLI's session factory points at."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    engine = create_async_engine(url, poolclass=NullPool)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    factory = async_sessionmaker(engine, expire_on_commit=False)
    monkeypatch.setattr(db_engine, "async_session_factory", factory)
    return factory


def _seed(factory, *rows):
    async def _insert():
        async with factory() as session:
            session.add_all(rows)
            await session.commit()

    asyncio.run(_insert())


def _mail_accounts(factory):
    async def _load():
        async with factory() as session:
            result = await session.execute(
                select(MailAccount).order_by(MailAccount.email_address)
            )
            return list(result.scalars().all())

    return asyncio.run(_load())


# ═══════════════════════════════════════════════════════════
# encode / inspect
# ═══════════════════════════════════════════════════════════


def test_encode_prints_canonical_ciphertext(runner, codec):
    result = runner.invoke(main, ["encode", "--value", "sk_live_abc123"])
    assert result.exit_code == 0
    stored = result.output.strip()
    assert codec.detect_format(stored) == SecretFormat.CIPHERTEXT
    assert codec.decode(stored) == "sk_live_abc123"


def test_inspect_legacy_value(runner):
    hex_value = "\\x" + "aGVsbG8=".encode().hex()
    result = runner.invoke(main, ["inspect", hex_value])
    assert result.exit_code == 0
    assert "hex_envelope" in result.output
    assert "usable:   yes" in result.output
    assert "legacy:   yes" in result.output
    assert "hello" not in result.output


def test_inspect_empty_marker(runner):
    result = runner.invoke(main, ["inspect", "\\x"])
    assert result.exit_code == 0
    assert "format:   empty" in result.output
    assert "usable:   no" in result.output


# ═══════════════════════════════════════════════════════════
# reencode
# ═══════════════════════════════════════════════════════════


def _legacy_rows(codec):
    owner = Account(external_principal_id="p1")
    legacy = MailAccount(
        owner=owner,
        provider="smtp",
        email_address="a@example.test",
        refresh_token_enc="\\x" + "dG9r".encode().hex(),  # base64 of "tok"
        smtp_username_enc=codec.encode("user"),
        smtp_password_enc="cGFzcw==",  # base64 of "pass"
    )
    corrupt = MailAccount(
        owner=owner,
        provider="gmail",
        email_address="b@example.test",
        refresh_token_enc="\\xzz",
    )
    return owner, legacy, corrupt


def test_reencode_dry_run_writes_nothing(runner, cli_db, codec):
    _seed(cli_db, *_legacy_rows(codec))
    result = runner.invoke(main, ["reencode", "--dry-run"])
    assert result.exit_code == 0, result.output
    assert "scanned 2 rows, would rewrite 2 values, skipped 1" in result.output

    legacy = _mail_accounts(cli_db)[0]
    assert legacy.smtp_password_enc == "cGFzcw=="


def test_reencode_rewrites_legacy_values(runner, cli_db, codec):
    _seed(cli_db, *_legacy_rows(codec))
    result = runner.invoke(main, ["reencode"])
    assert result.exit_code == 0, result.output
    assert "rewrote 2 values" in result.output

    legacy, corrupt = _mail_accounts(cli_db)
    for column in ("refresh_token_enc", "smtp_username_enc", "smtp_password_enc"):
        assert codec.detect_format(getattr(legacy, column)) == SecretFormat.CIPHERTEXT
    assert codec.decode(legacy.refresh_token_enc) == "tok"
    assert codec.decode(legacy.smtp_password_enc) == "pass"
    assert codec.decode(legacy.smtp_username_enc) == "user"
    # Undecodable values are left for a human to look at.
    assert corrupt.refresh_token_enc == "\\xzz"


# ═══════════════════════════════════════════════════════════
# resolve / dev-token
# ═══════════════════════════════════════════════════════════


def test_resolve_prefers_workspace(runner, cli_db):
    workspace = Workspace(external_org_id="o9")
    account = Account(external_principal_id="p1")
    _seed(cli_db, workspace, account)

    result = runner.invoke(main, ["resolve", "p1", "--org", "o9"])
    assert result.exit_code == 0, result.output
    # stdout carries only the scope; log lines go to stderr.
    assert result.stdout == f"workspace {workspace.id}\n"

    result = runner.invoke(main, ["resolve", "p1"])
    assert result.stdout == f"account {account.id}\n"


def test_resolve_output_is_clean_with_debug_logging(runner, cli_db, monkeypatch):
    """Even when debug events are emitted, nothing but the scope hits stdout."""
    account = Account(external_principal_id="p3")
    _seed(cli_db, account)

    monkeypatch.setattr(cli_settings, "debug", True)
    log_module._configured = False
    try:
        result = runner.invoke(main, ["resolve", "p3"])
    finally:
        log_module._configured = False
        configure_logging(Settings())
    assert result.exit_code == 0, result.output
    assert result.stdout == f"account {account.id}\n"
    assert "inboxdesk.scope_resolved" in result.stderr


def test_resolve_unprovisioned_exits_nonzero(runner, cli_db):
    result = runner.invoke(main, ["resolve", "nobody"])
    assert result.exit_code == 1
    assert "not provisioned" in result.output


def test_dev_token(runner):
    result = runner.invoke(main, ["dev-token", "user_1", "--org", "org_1"])
    assert result.exit_code == 0
    payload = verify_session_token(result.output.strip())
    assert payload["sub"] == "user_1"
    assert payload["org_id"] == "org_1"
