#!/usr/bin/env python3
"""
tenantauth quickstart — every credential kind in one script.

Creates a user in an in-memory SQLite store, issues an access token,
a refresh token and a PAT, authenticates each, then revokes the
refresh token and shows the next use failing.

Run with: python examples/quickstart.py

Requires: pip install -e ".[test]"   (aiosqlite for the in-memory store)
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tenantauth.auth.authenticator import Authenticator
from tenantauth.auth.errors import AuthError
from tenantauth.auth.pat import generate_personal_access_token
from tenantauth.auth.tokens import (
    AccessTokenClaims,
    RefreshTokenClaims,
    sign_access_token,
    sign_refresh_token,
)
from tenantauth.auth.usage import PATUsageRecorder
from tenantauth.db.engine import init_models
from tenantauth.store.models import PersonalAccessToken, RefreshTokenRecord, Role, User
from tenantauth.store.sql import SQLCredentialStore

SECRET = "quickstart-secret-not-for-production"


async def main():
    engine = create_async_engine("sqlite+aiosqlite://")
    await init_models(engine)
    store = SQLCredentialStore(
        async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    )
    recorder = PATUsageRecorder(store)
    await recorder.start()
    auth = Authenticator(store, SECRET, usage_recorder=recorder)

    # ── User ──────────────────────────────────────────────────────
    user = await store.create_user(User(username="demo", nickname="Demo", role=Role.ADMIN))
    print(f"1. Created user {user.username} (id={user.id})")

    # ── Access token ──────────────────────────────────────────────
    access = sign_access_token(
        AccessTokenClaims.issue(str(user.id), user.username, user.role, user.row_status), SECRET
    )
    result = await auth.authenticate(f"Bearer {access}")
    print(f"2. Access token  → {result.username} ({result.source})")

    # ── Personal access token ─────────────────────────────────────
    generated = generate_personal_access_token()
    await store.add_personal_access_token(
        PersonalAccessToken(user_id=user.id, token_id="cli", token_hash=generated.token_hash)
    )
    result = await auth.authenticate(f"Bearer {generated.token}")
    print(f"3. PAT           → {result.username} ({result.source})")

    # ── Refresh token + revocation ────────────────────────────────
    token_id = uuid.uuid4().hex
    expires_at = datetime.now(timezone.utc) + timedelta(days=30)
    await store.add_refresh_token(
        RefreshTokenRecord(user_id=user.id, token_id=token_id, expires_at=expires_at)
    )
    refresh = sign_refresh_token(RefreshTokenClaims.issue(str(user.id), token_id), SECRET)
    loaded, _ = await auth.authenticate_by_refresh_token(refresh)
    print(f"4. Refresh token → {loaded.username}")

    await store.delete_refresh_token(user.id, token_id)
    try:
        await auth.authenticate_by_refresh_token(refresh)
    except AuthError as e:
        print(f"5. After revoke  → rejected ({e.kind.value})")

    await recorder.stop()
    found = await store.get_user_by_pat_hash(generated.token_hash)
    print(f"6. PAT last used at {found.pat.last_used_at}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
