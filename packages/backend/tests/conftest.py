"""Test fixtures — an in-memory credential store, a fixed clock, a signing secret.

Learn: The Authenticator only talks to the CredentialStore protocol, so
most tests run against FakeCredentialStore below: plain dicts, a call log
(to prove which lookups happened, and with what arguments), and a switch
to make chosen methods fail with StoreError.

SQL store tests get a real SQLAlchemy engine on in-memory SQLite
(see the sql_store fixture) so the ORM mapping is exercised too.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tenantauth.auth.authenticator import Authenticator
from tenantauth.auth.errors import UserConflictError
from tenantauth.auth.pat import hash_personal_access_token
from tenantauth.store.base import StoreError
from tenantauth.store.models import (
    PersonalAccessToken,
    RefreshTokenRecord,
    Role,
    RowStatus,
    User,
    UserPAT,
)

SECRET = "test-signing-secret-0123456789abcdef"
OTHER_SECRET = "another-signing-secret-fedcba9876543210"

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class FakeCredentialStore:
    """Dict-backed CredentialStore with a call log."""

    def __init__(self):
        self.users: dict[int, User] = {}
        self.refresh_tokens: dict[tuple[int, str], RefreshTokenRecord] = {}
        self.pats: dict[str, PersonalAccessToken] = {}
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()
        self._next_id = 1

    # ─── Seeding helpers (not part of the protocol) ─────

    def add_user(self, username: str, **fields) -> User:
        user_id = fields.pop("id", None) or self._next_id
        self._next_id = max(self._next_id, user_id) + 1
        user = User(id=user_id, username=username, **fields)
        self.users[user_id] = user
        return user

    def add_refresh_token(self, user_id: int, token_id: str, expires_at=None) -> RefreshTokenRecord:
        record = RefreshTokenRecord(user_id=user_id, token_id=token_id, expires_at=expires_at)
        self.refresh_tokens[(user_id, token_id)] = record
        return record

    def delete_refresh_token(self, user_id: int, token_id: str) -> None:
        del self.refresh_tokens[(user_id, token_id)]

    def add_pat(self, user: User, token: str, token_id: str = "pat-1", expires_at=None) -> PersonalAccessToken:
        pat = PersonalAccessToken(
            user_id=user.id,
            token_id=token_id,
            token_hash=hash_personal_access_token(token),
            expires_at=expires_at,
        )
        self.pats[pat.token_hash] = pat
        return pat

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise StoreError(f"{name} failed")

    # ─── CredentialStore protocol ───────────────────────

    async def get_refresh_token(self, user_id, token_id):
        self._record("get_refresh_token", user_id, token_id)
        return self.refresh_tokens.get((user_id, token_id))

    async def get_user_by_id(self, user_id):
        self._record("get_user_by_id", user_id)
        return self.users.get(user_id)

    async def get_user_by_username(self, username):
        self._record("get_user_by_username", username)
        return next((u for u in self.users.values() if u.username == username), None)

    async def get_user_by_pat_hash(self, token_hash):
        self._record("get_user_by_pat_hash", token_hash)
        pat = self.pats.get(token_hash)
        if pat is None:
            return None
        return UserPAT(user=self.users[pat.user_id], pat=pat)

    async def create_user(self, user):
        self._record("create_user", user.username)
        if any(u.username == user.username for u in self.users.values()):
            raise UserConflictError(f"Username {user.username!r} already exists")
        return self.add_user(
            user.username,
            role=user.role,
            row_status=user.row_status,
            nickname=user.nickname,
            email=user.email,
            password_hash=user.password_hash,
        )

    async def update_pat_last_used(self, user_id, token_id, used_at):
        self._record("update_pat_last_used", user_id, token_id, used_at)
        for pat in self.pats.values():
            if pat.user_id == user_id and pat.token_id == token_id:
                pat.last_used_at = used_at


class ExplodingStore:
    """Fails the test on any attribute access — proves a path never hits the store."""

    def __getattr__(self, name):
        raise AssertionError(f"store.{name} must not be used on this path")


@pytest.fixture()
def clock():
    return FixedClock()


@pytest.fixture()
def store():
    return FakeCredentialStore()


@pytest.fixture()
def authenticator(store, clock):
    return Authenticator(store, SECRET, clock=clock)


@pytest.fixture()
def alice(store):
    return store.add_user("alice", id=42, role=Role.ADMIN, nickname="Alice")


@pytest.fixture()
def archived_user(store):
    return store.add_user("ghost", id=7, row_status=RowStatus.ARCHIVED)


@pytest_asyncio.fixture()
async def session_factory():
    """In-memory SQLite shared by every session (StaticPool keeps one connection)."""
    from tenantauth.db.engine import init_models

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(engine)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def sql_store(session_factory):
    from tenantauth.store.sql import SQLCredentialStore

    return SQLCredentialStore(session_factory)
