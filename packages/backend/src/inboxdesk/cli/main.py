"""inboxdesk operator CLI — stored-secret maintenance and tenant lookups.

Usage:
    inboxdesk encode                              # Prompt for a secret, print canonical ciphertext
    inboxdesk inspect '\\x6147567362473873413d'    # Report which stored format a value uses
    inboxdesk reencode --dry-run                  # Count legacy mail-account secrets
    inboxdesk reencode                            # Rewrite them in the canonical format
    inboxdesk resolve user_123 --org org_9        # Print the scope a principal resolves to
    inboxdesk dev-token user_123 --org org_9      # Mint a development session token

Commands that touch ciphertext read INBOXDESK_ENCRYPTION_KEY; commands that
touch the database read INBOXDESK_DATABASE_URL.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import sys
from typing import Optional

import click
from sqlalchemy import select

from inboxdesk import __version__
from inboxdesk.config import settings
from inboxdesk.crypto import KeyMaterial, KeyUnavailable, SecretCodec
from inboxdesk.log import configure_logging

# Secret columns rewritten by `reencode`.
MAIL_ACCOUNT_SECRET_COLUMNS = (
    "refresh_token_enc",
    "smtp_username_enc",
    "smtp_password_enc",
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _codec() -> SecretCodec:
    return SecretCodec(KeyMaterial.from_settings(settings))


def _fail(message: str):
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="inboxdesk")
def main():
    """inboxdesk — tenant scope and stored-secret maintenance."""
    configure_logging(settings)


# ---------------------------------------------------------------------------
# inboxdesk encode / inspect
# ---------------------------------------------------------------------------


@main.command()
@click.option(
    "--value",
    prompt="Secret",
    hide_input=True,
    help="Plaintext to encode (prompted with hidden input if omitted)",
)
def encode(value: str):
    """Encode a secret in the canonical stored format."""
    try:
        click.echo(_codec().encode(value))
    except KeyUnavailable as e:
        _fail(str(e))


@main.command()
@click.argument("stored")
def inspect(stored: str):
    """Report the stored format of STORED without printing the secret."""
    codec = _codec()
    fmt = codec.detect_format(stored)
    click.echo(f"format:   {fmt.value}")
    try:
        decoded = codec.decode(stored)
    except KeyUnavailable:
        click.secho("usable:   unknown (no encryption key configured)", fg="yellow")
        return
    click.echo(f"usable:   {'yes' if decoded is not None else 'no'}")
    if codec.needs_reencode(stored):
        click.secho("legacy:   yes, run `inboxdesk reencode`", fg="yellow")


# ---------------------------------------------------------------------------
# inboxdesk reencode
# ---------------------------------------------------------------------------


@main.command()
@click.option("--dry-run", is_flag=True, help="Report counts without writing")
def reencode(dry_run: bool):
    """Rewrite legacy mail-account secrets in the canonical format.

    Values that decode to nothing are left untouched so corrupt rows stay
    visible instead of being replaced by an encrypted empty marker.
    """
    try:
        counts = _run(_reencode_impl(_codec(), dry_run))
    except KeyUnavailable as e:
        _fail(str(e))
    verb = "would rewrite" if dry_run else "rewrote"
    click.echo(
        f"scanned {counts['scanned']} rows, {verb} {counts['rewritten']} values, "
        f"skipped {counts['undecodable']} undecodable values"
    )


async def _reencode_impl(codec: SecretCodec, dry_run: bool) -> dict:
    from inboxdesk.db.engine import async_session_factory
    from inboxdesk.db.models import MailAccount

    counts = {"scanned": 0, "rewritten": 0, "undecodable": 0}
    async with async_session_factory() as session:
        result = await session.execute(select(MailAccount))
        for mail_account in result.scalars().all():
            counts["scanned"] += 1
            for column in MAIL_ACCOUNT_SECRET_COLUMNS:
                stored = getattr(mail_account, column)
                if not codec.needs_reencode(stored):
                    continue
                plaintext = codec.decode(stored)
                if plaintext is None:
                    counts["undecodable"] += 1
                    continue
                counts["rewritten"] += 1
                if not dry_run:
                    setattr(mail_account, column, codec.encode(plaintext))
        if not dry_run:
            await session.commit()
    return counts


# ---------------------------------------------------------------------------
# inboxdesk resolve / dev-token
# ---------------------------------------------------------------------------


@main.command()
@click.argument("principal_id")
@click.option("--org", "org_id", help="Organization id from the identity provider")
def resolve(principal_id: str, org_id: Optional[str]):
    """Print the tenant scope PRINCIPAL_ID resolves to."""
    from inboxdesk.tenancy import ScopeLookupFailed, ScopeNotFound

    try:
        scope = _run(_resolve_impl(principal_id, org_id))
    except ScopeNotFound as e:
        _fail(f"{e} (not provisioned)")
    except ScopeLookupFailed as e:
        _fail(f"{e} (retry later)")
    ident = scope.workspace_id if scope.kind == "workspace" else scope.account_id
    click.echo(f"{scope.kind} {ident}")


async def _resolve_impl(principal_id: str, org_id: Optional[str]):
    from inboxdesk.db.engine import async_session_factory
    from inboxdesk.tenancy import Principal, ScopeResolver

    async with async_session_factory() as session:
        resolver = ScopeResolver(
            session, timeout_seconds=settings.scope_lookup_timeout_seconds
        )
        return await resolver.resolve(
            Principal(principal_id=principal_id, organization_id=org_id)
        )


@main.command("dev-token")
@click.argument("principal_id")
@click.option("--org", "org_id", help="Organization id claim")
@click.option("--email", help="Email claim")
@click.option("--minutes", type=int, default=None, help="Lifetime in minutes")
def dev_token(principal_id: str, org_id: Optional[str], email: Optional[str],
              minutes: Optional[int]):
    """Mint a session token for local development."""
    if settings.environment != "development":
        _fail("dev-token is only available when INBOXDESK_ENVIRONMENT=development")
    from inboxdesk.auth.jwt import create_session_token

    click.echo(create_session_token(principal_id, org_id=org_id, email=email,
                                    expires_minutes=minutes))


if __name__ == "__main__":
    main()
