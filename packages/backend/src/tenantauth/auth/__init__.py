"""Authentication.

Learn: Three ways to present a bearer credential, one Authenticator:
1. Short-lived signed access tokens (JWT) → stateless claims
2. Personal access tokens (PAT) → hash lookup in the store
3. Tokens from a third-party identity provider → delegated lookup,
   with shadow accounts created on first sight

Refresh tokens are checked separately against their store rows.
All paths resolve to an AuthResult for row-level scoping.
"""

from tenantauth.auth.authenticator import AuthResult, Authenticator, UserClaims
from tenantauth.auth.errors import AuthError, AuthErrorKind, ConfigurationError

__all__ = [
    "AuthError",
    "AuthErrorKind",
    "AuthResult",
    "Authenticator",
    "ConfigurationError",
    "UserClaims",
]
