"""Authentication and tenant authorization.

Learn: Authentication is delegated to the external identity provider; we
only verify its session token. Authorization is the tenant Scope resolved
from that token on every request and applied to every tenant-owned query.
"""
