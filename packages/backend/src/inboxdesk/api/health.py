"""Health check endpoint.

Learn: Reports whether the database is reachable and whether secret
storage is configured. Never reports the passphrase itself.
"""

from fastapi import APIRouter
from sqlalchemy import text

from inboxdesk import __version__
from inboxdesk.crypto import get_secret_codec
from inboxdesk.db import engine as db_engine

router = APIRouter()


@router.get("/health")
async def health_check():
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with db_engine.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    checks["secret_storage"] = (
        "ok" if get_secret_codec().keys.available else "unconfigured"
    )

    status = "healthy" if all(
        v == "ok" for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {"status": status, **checks}
