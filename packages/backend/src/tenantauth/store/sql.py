"""SQLAlchemy implementation of the CredentialStore protocol.

Learn: Each operation opens its own AsyncSession from the factory, so a
single SQLCredentialStore is safe to share across concurrent requests
and across the background PAT usage worker.

ORM rows are converted to the plain records in store.models at the
boundary; nothing outside this module sees a SQLAlchemy object.
SQLAlchemy errors become StoreError, except a duplicate username on
insert, which is the shadow-account race and becomes UserConflictError.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenantauth.auth.errors import UserConflictError
from tenantauth.db.models import PersonalAccessTokenRow, RefreshTokenRow, UserRow
from tenantauth.store.base import StoreError
from tenantauth.store.models import (
    PersonalAccessToken,
    RefreshTokenRecord,
    Role,
    RowStatus,
    User,
    UserPAT,
)


def _aware(value: datetime | None) -> datetime | None:
    """Backends like SQLite drop the zone on read; stored values are UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        username=row.username,
        role=Role(row.role),
        row_status=RowStatus(row.row_status),
        nickname=row.nickname,
        email=row.email,
        password_hash=row.password_hash,
        created_at=_aware(row.created_at),
    )


def _to_refresh_token(row: RefreshTokenRow) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        user_id=row.user_id,
        token_id=row.token_id,
        expires_at=_aware(row.expires_at),
        description=row.description,
        created_at=_aware(row.created_at),
    )


def _to_pat(row: PersonalAccessTokenRow) -> PersonalAccessToken:
    return PersonalAccessToken(
        user_id=row.user_id,
        token_id=row.token_id,
        token_hash=row.token_hash,
        description=row.description,
        expires_at=_aware(row.expires_at),
        last_used_at=_aware(row.last_used_at),
        created_at=_aware(row.created_at),
    )


class SQLCredentialStore:
    """CredentialStore backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    # ─── Lookups ────────────────────────────────────────

    async def get_refresh_token(self, user_id: int, token_id: str) -> RefreshTokenRecord | None:
        q = select(RefreshTokenRow).where(
            RefreshTokenRow.user_id == user_id,
            RefreshTokenRow.token_id == token_id,
        )
        row = await self._first(q)
        return _to_refresh_token(row) if row else None

    async def get_user_by_id(self, user_id: int) -> User | None:
        row = await self._first(select(UserRow).where(UserRow.id == user_id))
        return _to_user(row) if row else None

    async def get_user_by_username(self, username: str) -> User | None:
        row = await self._first(select(UserRow).where(UserRow.username == username))
        return _to_user(row) if row else None

    async def get_user_by_pat_hash(self, token_hash: str) -> UserPAT | None:
        q = (
            select(UserRow, PersonalAccessTokenRow)
            .join(PersonalAccessTokenRow, PersonalAccessTokenRow.user_id == UserRow.id)
            .where(PersonalAccessTokenRow.token_hash == token_hash)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(q)
                found = result.first()
        except SQLAlchemyError as e:
            raise StoreError(f"PAT lookup failed: {e}") from e

        if found is None:
            return None
        user_row, pat_row = found
        return UserPAT(user=_to_user(user_row), pat=_to_pat(pat_row))

    # ─── Mutations ──────────────────────────────────────

    async def create_user(self, user: User) -> User:
        row = UserRow(
            username=user.username,
            role=user.role.value,
            row_status=user.row_status.value,
            nickname=user.nickname,
            email=user.email,
            password_hash=user.password_hash,
        )
        try:
            async with self.session_factory() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except IntegrityError as e:
            raise UserConflictError(f"Username {user.username!r} already exists") from e
        except SQLAlchemyError as e:
            raise StoreError(f"User creation failed: {e}") from e
        return _to_user(row)

    async def update_pat_last_used(self, user_id: int, token_id: str, used_at: datetime) -> None:
        q = (
            update(PersonalAccessTokenRow)
            .where(
                PersonalAccessTokenRow.user_id == user_id,
                PersonalAccessTokenRow.token_id == token_id,
            )
            .values(last_used_at=used_at)
        )
        await self._execute(q, "PAT last-used update failed")

    # ─── Token lifecycle (used by issuance code) ────────

    async def add_refresh_token(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        row = RefreshTokenRow(
            user_id=record.user_id,
            token_id=record.token_id,
            description=record.description,
            expires_at=record.expires_at,
        )
        await self._insert(row, "Refresh token insert failed")
        return _to_refresh_token(row)

    async def delete_refresh_token(self, user_id: int, token_id: str) -> None:
        """Revoke a refresh token by removing its row."""
        q = delete(RefreshTokenRow).where(
            RefreshTokenRow.user_id == user_id,
            RefreshTokenRow.token_id == token_id,
        )
        await self._execute(q, "Refresh token delete failed")

    async def add_personal_access_token(self, pat: PersonalAccessToken) -> PersonalAccessToken:
        row = PersonalAccessTokenRow(
            user_id=pat.user_id,
            token_id=pat.token_id,
            token_hash=pat.token_hash,
            description=pat.description,
            expires_at=pat.expires_at,
        )
        await self._insert(row, "PAT insert failed")
        return _to_pat(row)

    async def delete_personal_access_token(self, user_id: int, token_id: str) -> None:
        q = delete(PersonalAccessTokenRow).where(
            PersonalAccessTokenRow.user_id == user_id,
            PersonalAccessTokenRow.token_id == token_id,
        )
        await self._execute(q, "PAT delete failed")

    # ─── Helpers ────────────────────────────────────────

    async def _first(self, q):
        try:
            async with self.session_factory() as session:
                result = await session.execute(q)
                return result.scalars().first()
        except SQLAlchemyError as e:
            raise StoreError(f"Query failed: {e}") from e

    async def _execute(self, q, message: str) -> None:
        try:
            async with self.session_factory() as session:
                await session.execute(q)
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"{message}: {e}") from e

    async def _insert(self, row, message: str) -> None:
        try:
            async with self.session_factory() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except SQLAlchemyError as e:
            raise StoreError(f"{message}: {e}") from e
