"""Credential storage: domain records, the store protocol and its SQL implementation."""

from tenantauth.store.base import CredentialStore, StoreError
from tenantauth.store.models import (
    PersonalAccessToken,
    RefreshTokenRecord,
    Role,
    RowStatus,
    User,
    UserPAT,
)

__all__ = [
    "CredentialStore",
    "StoreError",
    "PersonalAccessToken",
    "RefreshTokenRecord",
    "Role",
    "RowStatus",
    "User",
    "UserPAT",
]
