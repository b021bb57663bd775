"""Authentication error taxonomy.

Learn: Every credential failure is an AuthError with a machine-readable
`kind`. The combined Authenticator.authenticate() flow treats all of them
as soft failures (log and try the next path). The direct operations
(authenticate_by_refresh_token, authenticate_by_pat, ...) raise them so
issuance endpoints can react differently, e.g. force a re-login on
`revoked` but just re-prompt on `malformed`.

`retryable` marks conditions that may succeed on a plain retry
(a remote outage, a lost shadow-user creation race).
"""

from enum import Enum


class AuthErrorKind(str, Enum):
    MALFORMED = "malformed"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    REVOKED = "revoked"
    NOT_FOUND = "not_found"
    ARCHIVED = "archived"
    REMOTE_UNAVAILABLE = "remote_unavailable"
    REMOTE_INVALID_IDENTITY = "remote_invalid_identity"
    CONFLICT = "conflict"


class ConfigurationError(ValueError):
    """Raised for deployment defects such as an empty signing secret."""


class AuthError(Exception):
    """Base class for credential failures."""

    kind: AuthErrorKind
    retryable: bool = False


class MalformedCredentialError(AuthError):
    """The credential does not parse."""

    kind = AuthErrorKind.MALFORMED


class TokenTypeMismatchError(MalformedCredentialError):
    """An access token presented as a refresh token, or the other way round."""


class InvalidSignatureError(AuthError):
    kind = AuthErrorKind.INVALID_SIGNATURE


class ExpiredCredentialError(AuthError):
    kind = AuthErrorKind.EXPIRED


class RevokedCredentialError(AuthError):
    """Signature is valid but the backing store row is gone."""

    kind = AuthErrorKind.REVOKED


class CredentialNotFoundError(AuthError):
    kind = AuthErrorKind.NOT_FOUND


class ArchivedUserError(AuthError):
    kind = AuthErrorKind.ARCHIVED


class RemoteUnavailableError(AuthError):
    """Network error, timeout or non-2xx status from the identity provider."""

    kind = AuthErrorKind.REMOTE_UNAVAILABLE
    retryable = True


class RemoteInvalidIdentityError(AuthError):
    """The identity provider answered, but without a usable username."""

    kind = AuthErrorKind.REMOTE_INVALID_IDENTITY


class UserConflictError(AuthError):
    """Shadow-user creation lost a race on the unique username."""

    kind = AuthErrorKind.CONFLICT
    retryable = True
