"""Tenant scoping: who owns the data a request may touch.

Learn: Two tenant shapes exist. Organization members share a Workspace;
everyone else owns their data through a personal Account. Scope picks one
of the two per request and apply_scope turns it into the WHERE clause.
"""

from inboxdesk.tenancy.scope import (
    Principal,
    Scope,
    ScopeLookupFailed,
    ScopeNotFound,
    ScopeResolver,
    apply_scope,
)

__all__ = [
    "Principal",
    "Scope",
    "ScopeLookupFailed",
    "ScopeNotFound",
    "ScopeResolver",
    "apply_scope",
]
