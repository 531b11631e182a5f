"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Authentication is applied at the include_router level; tenant
scope is a per-route dependency because /scope/provision must run for
principals that do not resolve to a scope yet.
"""

from fastapi import APIRouter, Depends

from inboxdesk.api.health import router as health_router
from inboxdesk.api.mail_accounts import router as mail_accounts_router
from inboxdesk.api.scope import router as scope_router
from inboxdesk.auth.dependencies import get_current_user

_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])

# Protected routes — require a valid session token
api_router.include_router(scope_router, tags=["scope"], dependencies=_auth)
api_router.include_router(mail_accounts_router, tags=["mail-accounts"], dependencies=_auth)
