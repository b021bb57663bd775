"""Auth API — who am I?

Learn: Token issuance (login, refresh rotation, PAT creation) belongs to
the surrounding application. This router only exposes the resolved
principal, which is handy for clients and for checking a deployment:
- GET /auth/me → the principal behind the bearer token
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from tenantauth.auth.authenticator import AuthResult
from tenantauth.auth.dependencies import get_auth_result

router = APIRouter(prefix="/auth")


class PrincipalRead(BaseModel):
    source: str  # "claims" (stateless access token) or "user" (loaded record)
    id: int
    username: str
    role: str
    status: str
    nickname: Optional[str] = None


@router.get("/me", response_model=PrincipalRead)
async def get_me(result: AuthResult = Depends(get_auth_result)):
    """Get the current authenticated principal."""
    if result.claims is not None:
        return PrincipalRead(
            source="claims",
            id=result.claims.user_id,
            username=result.claims.username,
            role=result.claims.role.value,
            status=result.claims.status.value,
        )

    user = result.user
    return PrincipalRead(
        source="user",
        id=user.id,
        username=user.username,
        role=user.role.value,
        status=user.row_status.value,
        nickname=user.nickname,
    )
