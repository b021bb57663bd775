"""tenantauth — request authentication for a multi-tenant API server.

Resolves the bearer credential on an inbound call (signed access token,
personal access token, or a delegated third-party identity) to a
principal, and re-authenticates refresh tokens against their store rows.
"""

__version__ = "0.1.0"
