"""inboxdesk — multi-tenant support inbox backend.

Resolves every request to a tenant scope (shared workspace or personal
account) and decodes the mailbox credentials stored for that tenant.
"""

__version__ = "0.1.0"
