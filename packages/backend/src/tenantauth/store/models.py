"""Domain records exchanged between the authenticator and its store.

Learn: These are plain dataclasses, not ORM rows. The authenticator only
depends on these shapes and on the CredentialStore protocol, so any
backend (SQLAlchemy, a cache, a test fake) can sit behind it.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Role(str, Enum):
    HOST = "HOST"
    ADMIN = "ADMIN"
    USER = "USER"


class RowStatus(str, Enum):
    NORMAL = "NORMAL"
    ARCHIVED = "ARCHIVED"


@dataclass
class User:
    """A local user account.

    An empty password_hash disables password login; shadow accounts
    provisioned from a remote identity always have one.
    """

    username: str
    id: Optional[int] = None  # assigned by the store
    role: Role = Role.USER
    row_status: RowStatus = RowStatus.NORMAL
    nickname: str = ""
    email: str = ""
    password_hash: str = ""
    created_at: Optional[datetime] = None

    @property
    def is_archived(self) -> bool:
        return self.row_status == RowStatus.ARCHIVED


@dataclass
class RefreshTokenRecord:
    """Server-side row backing a refresh token. Deleting it revokes the token."""

    user_id: int
    token_id: str
    expires_at: Optional[datetime] = None
    description: str = ""
    created_at: Optional[datetime] = None


@dataclass
class PersonalAccessToken:
    user_id: int
    token_id: str
    token_hash: str
    description: str = ""
    expires_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None  # advisory only
    created_at: Optional[datetime] = None


@dataclass
class UserPAT:
    user: User
    pat: PersonalAccessToken
