"""JWT token signing and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (15min), trusted on signature + expiry alone
- Refresh token: long-lived (30 days), only valid while its store row exists

Both are HS256 tokens signed with a secret that is always passed in
explicitly — this module reads no settings and does no I/O. A `type`
claim separates the two shapes so one can never be parsed as the other.

Expiry is checked against a caller-supplied `now` rather than PyJWT's
own clock, which keeps verification a pure function of its inputs.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from tenantauth.auth.errors import (
    ConfigurationError,
    ExpiredCredentialError,
    InvalidSignatureError,
    MalformedCredentialError,
    TokenTypeMismatchError,
)

ALGORITHM = "HS256"
ISSUER = "tenantauth"

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

ACCESS_TOKEN_LIFETIME = timedelta(minutes=15)
REFRESH_TOKEN_LIFETIME = timedelta(days=30)

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_USER_ID_RE = re.compile(r"-?[0-9]+")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _plain(value: Any) -> str:
    """Enum members are signed by value, everything else as-is."""
    return getattr(value, "value", value)


@dataclass(frozen=True)
class AccessTokenClaims:
    subject: str
    username: str
    role: str
    status: str
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def issue(
        cls,
        subject: str,
        username: str,
        role: str,
        status: str,
        *,
        lifetime: timedelta = ACCESS_TOKEN_LIFETIME,
        now: Optional[datetime] = None,
    ) -> "AccessTokenClaims":
        issued_at = now or _utcnow()
        return cls(
            subject=str(subject),
            username=username,
            role=_plain(role),
            status=_plain(status),
            issued_at=issued_at,
            expires_at=issued_at + lifetime,
        )


@dataclass(frozen=True)
class RefreshTokenClaims:
    subject: str
    token_id: str
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def issue(
        cls,
        subject: str,
        token_id: str,
        *,
        lifetime: timedelta = REFRESH_TOKEN_LIFETIME,
        now: Optional[datetime] = None,
    ) -> "RefreshTokenClaims":
        issued_at = now or _utcnow()
        return cls(
            subject=str(subject),
            token_id=token_id,
            issued_at=issued_at,
            expires_at=issued_at + lifetime,
        )


# ─── Signing ─────────────────────────────────────────────


def sign_access_token(claims: AccessTokenClaims, secret: str) -> str:
    """Sign an access token carrying subject, username, role and status."""
    payload = {
        "sub": claims.subject,
        "type": ACCESS_TOKEN_TYPE,
        "name": claims.username,
        "role": claims.role,
        "status": claims.status,
    }
    return _encode(payload, claims.issued_at, claims.expires_at, secret)


def sign_refresh_token(claims: RefreshTokenClaims, secret: str) -> str:
    """Sign a refresh token carrying subject and token identifier."""
    payload = {
        "sub": claims.subject,
        "type": REFRESH_TOKEN_TYPE,
        "tid": claims.token_id,
    }
    return _encode(payload, claims.issued_at, claims.expires_at, secret)


def _encode(payload: dict, issued_at: datetime, expires_at: datetime, secret: str) -> str:
    _require_secret(secret)
    payload = {
        **payload,
        "iss": ISSUER,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


# ─── Verification ────────────────────────────────────────


def verify_access_token(
    token: str, secret: str, *, now: Optional[datetime] = None
) -> AccessTokenClaims:
    """Verify an access token.

    Raises InvalidSignatureError, ExpiredCredentialError,
    MalformedCredentialError (or TokenTypeMismatchError for a refresh token).
    """
    payload = _decode(token, secret, ACCESS_TOKEN_TYPE, ("name", "role", "status"), now)
    return AccessTokenClaims(
        subject=payload["sub"],
        username=str(payload["name"]),
        role=str(payload["role"]),
        status=str(payload["status"]),
        issued_at=_from_epoch(payload["iat"]),
        expires_at=_from_epoch(payload["exp"]),
    )


def verify_refresh_token(
    token: str, secret: str, *, now: Optional[datetime] = None
) -> RefreshTokenClaims:
    """Verify a refresh token. Same errors as verify_access_token."""
    payload = _decode(token, secret, REFRESH_TOKEN_TYPE, ("tid",), now)
    return RefreshTokenClaims(
        subject=payload["sub"],
        token_id=str(payload["tid"]),
        issued_at=_from_epoch(payload["iat"]),
        expires_at=_from_epoch(payload["exp"]),
    )


def _decode(
    token: str,
    secret: str,
    expected_type: str,
    extra_claims: tuple[str, ...],
    now: Optional[datetime],
) -> dict:
    _require_secret(secret)
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            issuer=ISSUER,
            options={
                # shape-specific claims are checked after `type`
                "require": ["sub", "type", "iat", "exp", "iss"],
                # exp/iat are checked below against the caller's clock
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
            },
        )
    except jwt.InvalidSignatureError:
        raise InvalidSignatureError("Token signature does not match")
    except jwt.InvalidTokenError as e:
        raise MalformedCredentialError(f"Invalid token: {e}")

    token_type = payload.get("type")
    if token_type != expected_type:
        raise TokenTypeMismatchError(
            f"Expected a {expected_type} token, got {token_type!r}"
        )

    missing = [claim for claim in extra_claims if claim not in payload]
    if missing:
        raise MalformedCredentialError(f"Token is missing claims: {', '.join(missing)}")

    for claim in ("iat", "exp"):
        if isinstance(payload[claim], bool) or not isinstance(payload[claim], (int, float)):
            raise MalformedCredentialError(f"Claim {claim!r} must be a timestamp")

    current = now or _utcnow()
    if payload["exp"] <= current.timestamp():
        raise ExpiredCredentialError("Token has expired")

    return payload


def _from_epoch(value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _require_secret(secret: str) -> None:
    if not secret:
        raise ConfigurationError("Signing secret must not be empty")


def parse_user_id(subject: str) -> int:
    """Convert a token subject to a numeric user id (signed 32-bit)."""
    if not isinstance(subject, str) or not _USER_ID_RE.fullmatch(subject):
        raise MalformedCredentialError("Invalid user ID in token")
    user_id = int(subject)
    if not _INT32_MIN <= user_id <= _INT32_MAX:
        raise MalformedCredentialError("User ID in token is out of range")
    return user_id
