"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Only portable column types are used, so the same
schema runs on PostgreSQL in production and SQLite in tests.

Tables:
- users: local accounts, including shadow accounts from a remote identity
- user_refresh_tokens: one row per live refresh token (delete = revoke)
- personal_access_tokens: PAT hashes, never the raw secret
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRow(Base):
    """A local user. Username is the join key for remote identities."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="USER")
    row_status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="NORMAL"
    )
    nickname: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    password_hash: Mapped[str] = mapped_column(
        String(255), nullable=False, default=""
    )  # empty for shadow accounts
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )


class RefreshTokenRow(Base):
    """Server-side record for an issued refresh token.

    Learn: The signed refresh token alone is never enough. Logout and
    rotation delete this row, and the next use of the token fails as revoked.
    """

    __tablename__ = "user_refresh_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "token_id", name="uq_refresh_tokens_user_token"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token_id: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )


class PersonalAccessTokenRow(Base):
    """Personal access token for programmatic access.

    Learn: The token itself is only shown once (on creation). We store
    the SHA-256 hash and look tokens up by it. last_used_at is telemetry,
    written asynchronously after successful authentication.
    """

    __tablename__ = "personal_access_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "token_id", name="uq_pats_user_token"),
        Index("idx_pats_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token_id: Mapped[str] = mapped_column(String(64), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
