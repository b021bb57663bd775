"""Authenticator — resolves an inbound bearer credential to a principal.

Learn: One Authenticator is shared by every request (interceptors,
FastAPI dependencies, file servers), so all entry points agree on
what "authenticated" means. It holds only immutable config and
handles that are safe for concurrent use.

Authentication paths, tried in this order:

1. Access token (JWT)      stateless — signature + expiry + status claim,
                           no store round-trip
2. Personal access token   hash lookup in the store, expiry, owner status;
                           last-used is recorded in the background
3. Remote identity         the header is forwarded to a third-party
                           provider; unknown usernames get a shadow account

Which paths run is decided once from the token's prefix (see
credentials.CredentialKind). Inside authenticate() every failure is
soft: it is logged and the next path runs, and the caller only ever
sees a result or None. The authenticate_by_* methods raise the
specific AuthError for callers that must tell the cases apart.

Refresh tokens are never accepted by authenticate(); they go through
authenticate_by_refresh_token(), which always checks the store row so
that a revoked token fails on its very next use.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import structlog

from tenantauth.auth.credentials import Credential, CredentialKind, classify_credential
from tenantauth.auth.errors import (
    ArchivedUserError,
    AuthError,
    ConfigurationError,
    CredentialNotFoundError,
    ExpiredCredentialError,
    MalformedCredentialError,
    RemoteUnavailableError,
    RevokedCredentialError,
    UserConflictError,
)
from tenantauth.auth.pat import (
    PERSONAL_ACCESS_TOKEN_PREFIX,
    hash_personal_access_token,
    is_personal_access_token,
)
from tenantauth.auth.remote import RemoteIdentityClient
from tenantauth.auth.tokens import parse_user_id, verify_access_token, verify_refresh_token
from tenantauth.auth.usage import PATUsage, PATUsageRecorder
from tenantauth.store.base import CredentialStore, StoreError
from tenantauth.store.models import PersonalAccessToken, Role, RowStatus, User

logger = structlog.get_logger()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UserClaims:
    """Identity carried by a verified access token. No store lookup behind it."""

    user_id: int
    username: str
    role: Role
    status: RowStatus


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful authenticate() call.

    Exactly one of `user` (PAT and remote paths) or `claims` (access
    token path) is set. Callers that need more than the claim fields
    from a claims-only result load the user themselves.
    """

    token: str  # raw bearer token, for caller-side audit
    user: Optional[User] = None
    claims: Optional[UserClaims] = None

    def __post_init__(self):
        if (self.user is None) == (self.claims is None):
            raise ValueError("AuthResult needs exactly one of user or claims")

    def __repr__(self) -> str:
        return f"AuthResult(user_id={self.user_id!r}, source={self.source!r})"

    @property
    def source(self) -> str:
        return "claims" if self.claims is not None else "user"

    @property
    def user_id(self) -> int:
        return self.claims.user_id if self.claims is not None else self.user.id

    @property
    def username(self) -> str:
        return self.claims.username if self.claims is not None else self.user.username

    @property
    def role(self) -> Role:
        return self.claims.role if self.claims is not None else self.user.role


_AuthPath = Callable[[Credential], Awaitable[AuthResult]]


class Authenticator:
    """Shared authentication logic for every API entry point.

    Args:
        store: CredentialStore used by the PAT, refresh and remote paths.
        secret: HMAC secret for access and refresh tokens. Must not be empty.
        remote_client: Enables the remote identity fallback when given.
        usage_recorder: Receives PAT last-used updates. Without one,
            last-used tracking is off.
        pat_prefix: Prefix that marks a bearer token as a PAT.
        clock: Returns the current aware UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: CredentialStore,
        secret: str,
        *,
        remote_client: Optional[RemoteIdentityClient] = None,
        usage_recorder: Optional[PATUsageRecorder] = None,
        pat_prefix: str = PERSONAL_ACCESS_TOKEN_PREFIX,
        clock: Callable[[], datetime] = utcnow,
    ):
        if not secret:
            raise ConfigurationError("Authenticator requires a non-empty signing secret")
        if not pat_prefix:
            raise ConfigurationError("PAT prefix must not be empty")

        self.store = store
        self._secret = secret
        self.remote_client = remote_client
        self.usage_recorder = usage_recorder
        self.pat_prefix = pat_prefix
        self.clock = clock

        bearer_paths: list[tuple[str, _AuthPath]] = [("access_token", self._try_access_token)]
        if remote_client is not None:
            bearer_paths.append(("remote_identity", self._try_remote_identity))

        self._paths: dict[CredentialKind, tuple[tuple[str, _AuthPath], ...]] = {
            CredentialKind.BEARER_TOKEN: tuple(bearer_paths),
            CredentialKind.PERSONAL_ACCESS_TOKEN: (
                ("personal_access_token", self._try_personal_access_token),
            ),
        }

    # ─── Combined flow ──────────────────────────────────

    async def authenticate(self, authorization: Optional[str]) -> Optional[AuthResult]:
        """Authenticate an Authorization header value.

        Returns None if there is no bearer token or no path accepts it.
        Only configuration defects raise.
        """
        credential = classify_credential(authorization, self.pat_prefix)
        if credential is None:
            return None

        for name, path in self._paths[credential.kind]:
            try:
                return await path(credential)
            except (AuthError, StoreError) as e:
                self._log_path_failure(name, credential, e)

        logger.debug("auth.unauthenticated", credential_kind=credential.kind.value)
        return None

    async def _try_access_token(self, credential: Credential) -> AuthResult:
        claims = await self.authenticate_by_access_token(credential.token)
        return AuthResult(token=credential.token, claims=claims)

    async def _try_personal_access_token(self, credential: Credential) -> AuthResult:
        user, pat = await self.authenticate_by_pat(credential.token)
        self._record_pat_usage(pat)
        return AuthResult(token=credential.token, user=user)

    async def _try_remote_identity(self, credential: Credential) -> AuthResult:
        user = await self.authenticate_by_remote_identity(credential.authorization)
        return AuthResult(token=credential.token, user=user)

    def _record_pat_usage(self, pat: PersonalAccessToken) -> None:
        if self.usage_recorder is None:
            return
        self.usage_recorder.submit(
            PATUsage(user_id=pat.user_id, token_id=pat.token_id, used_at=self.clock())
        )

    @staticmethod
    def _log_path_failure(path: str, credential: Credential, error: Exception) -> None:
        log = logger.bind(
            path=path,
            credential_kind=credential.kind.value,
            error=str(error),
        )
        if isinstance(error, StoreError):
            log.warning("auth.store_error")
        elif isinstance(error, RemoteUnavailableError):
            # Expected during a network partition — the request just degrades
            log.warning("auth.remote_unavailable")
        elif isinstance(error, UserConflictError):
            log.info("auth.shadow_user_conflict")
        else:
            log.debug("auth.path_failed", error_kind=error.kind.value)

    # ─── Access token (stateless) ───────────────────────

    async def authenticate_by_access_token(self, token: str) -> UserClaims:
        """Validate a short-lived access token without touching the store."""
        claims = verify_access_token(token, self._secret, now=self.clock())
        user_id = parse_user_id(claims.subject)

        try:
            role = Role(claims.role)
            status = RowStatus(claims.status)
        except ValueError:
            raise MalformedCredentialError("Unknown role or status in token")

        if status == RowStatus.ARCHIVED:
            raise ArchivedUserError("User is archived")

        return UserClaims(
            user_id=user_id,
            username=claims.username,
            role=role,
            status=status,
        )

    # ─── Refresh token (stateful) ───────────────────────

    async def authenticate_by_refresh_token(self, refresh_token: str) -> tuple[User, str]:
        """Validate a refresh token against its store row.

        Returns (user, token_id). Raises RevokedCredentialError when the
        signature is valid but the row is gone, and StoreError when a
        store lookup fails.
        """
        claims = verify_refresh_token(refresh_token, self._secret, now=self.clock())
        user_id = parse_user_id(claims.subject)

        # Revocation check — the row is the source of truth
        record = await self.store.get_refresh_token(user_id, claims.token_id)
        if record is None:
            raise RevokedCredentialError("Refresh token revoked")
        if self._is_expired(record.expires_at):
            raise ExpiredCredentialError("Refresh token expired")

        user = await self.store.get_user_by_id(user_id)
        if user is None:
            raise CredentialNotFoundError("User not found")
        if user.is_archived:
            raise ArchivedUserError("User is archived")

        return user, claims.token_id

    # ─── Personal access token ──────────────────────────

    async def authenticate_by_pat(self, token: str) -> tuple[User, PersonalAccessToken]:
        """Validate a PAT by its hash. The raw token never reaches the store.

        Raises an AuthError for a bad credential. A failing store lookup
        propagates as StoreError, which is not an AuthError: the PAT may
        still be valid.
        """
        if not is_personal_access_token(token, self.pat_prefix):
            raise MalformedCredentialError("Invalid PAT format")

        result = await self.store.get_user_by_pat_hash(hash_personal_access_token(token))
        if result is None:
            raise CredentialNotFoundError("Invalid PAT")

        if self._is_expired(result.pat.expires_at):
            raise ExpiredCredentialError("PAT expired")
        if result.user.is_archived:
            raise ArchivedUserError("User is archived")

        return result.user, result.pat

    # ─── Remote identity (delegated) ────────────────────

    async def authenticate_by_remote_identity(self, authorization: str) -> User:
        """Resolve the header with the remote provider, provisioning a shadow user if needed.

        Existing local users are returned untouched; remote data never
        updates them. Store failures propagate as StoreError, and a lost
        shadow-account race as UserConflictError.
        """
        if self.remote_client is None:
            raise ConfigurationError("No remote identity provider configured")
        if not authorization:
            raise MalformedCredentialError("Empty authorization header")

        identity = await self.remote_client.resolve(authorization)

        user = await self.store.get_user_by_username(identity.username)
        if user is not None:
            if user.is_archived:
                raise ArchivedUserError("User is archived")
            return user

        # Shadow account — empty password hash disables password login
        created = await self.store.create_user(
            User(
                username=identity.username,
                nickname=identity.username,
                role=Role.USER,
                row_status=RowStatus.NORMAL,
                password_hash="",
            )
        )
        logger.info(
            "auth.shadow_user_created",
            user_id=created.id,
            username=created.username,
            remote_uid=identity.uid,
        )
        return created

    # ─── Helpers ────────────────────────────────────────

    def _is_expired(self, expires_at: Optional[datetime]) -> bool:
        return expires_at is not None and expires_at <= self.clock()
