"""CredentialStore protocol — what the authenticator needs from storage."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from tenantauth.store.models import RefreshTokenRecord, User, UserPAT


class StoreError(Exception):
    """The backing store failed (connection lost, query error, ...)."""


@runtime_checkable
class CredentialStore(Protocol):
    """Async lookups and mutations used by the Authenticator.

    Lookups return None for "no such row"; infrastructure failures are
    raised as StoreError. Implementations must be safe for concurrent use.
    """

    async def get_refresh_token(self, user_id: int, token_id: str) -> RefreshTokenRecord | None:
        ...

    async def get_user_by_id(self, user_id: int) -> User | None:
        ...

    async def get_user_by_username(self, username: str) -> User | None:
        ...

    async def get_user_by_pat_hash(self, token_hash: str) -> UserPAT | None:
        ...

    async def create_user(self, user: User) -> User:
        """Insert a user and return it with its id.

        Raises UserConflictError when the username is already taken.
        """
        ...

    async def update_pat_last_used(self, user_id: int, token_id: str, used_at: datetime) -> None:
        ...
