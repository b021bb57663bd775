"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the current principal from the request.

The Authenticator itself lives on app.state (built in the lifespan).
The resolved principal is also stored on request.state.auth_result so
RequestContextMiddleware can log it once the response is ready.
"""

from typing import Optional

import structlog
from fastapi import Depends, Header, HTTPException, Request

from tenantauth.auth.authenticator import AuthResult, Authenticator


def get_authenticator(request: Request) -> Authenticator:
    """Return the shared Authenticator built at startup."""
    return request.app.state.authenticator


async def get_auth_result_optional(
    request: Request,
    authorization: Optional[str] = Header(None),
    authenticator: Authenticator = Depends(get_authenticator),
) -> Optional[AuthResult]:
    """Resolve the current principal (optional — returns None if no auth).

    Learn: This is the "soft" auth dependency. Used for endpoints that
    work both authenticated and unauthenticated. For mandatory auth,
    use get_auth_result instead.
    """
    if not authorization:
        return None

    result = await authenticator.authenticate(authorization)
    if result is not None:
        request.state.auth_result = result
        structlog.contextvars.bind_contextvars(
            user_id=result.user_id, auth_source=result.source
        )
    return result


async def get_auth_result(
    result: Optional[AuthResult] = Depends(get_auth_result_optional),
) -> AuthResult:
    """Resolve the current principal (required — 401 if no auth).

    Learn: The detail is the same whatever path failed; the reason is
    in the server log, not in the response.
    """
    if result is None:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return result
