"""Health check endpoint.

Learn: Reports whether requests can be authenticated right now:
- database: the credential store answers `SELECT 1`
- authenticator: the lifespan has built the shared Authenticator
- remote_identity: whether the delegated path is configured at all
- pat_usage: worker state and backlog of the last-used recorder

Only the first two decide "healthy" vs "degraded". A missing remote
provider is a configuration choice, and a PAT usage backlog only
delays telemetry.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from tenantauth import __version__
from tenantauth.db.engine import engine

router = APIRouter()


async def _database_status() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        return f"error: {e}"
    return "ok"


@router.get("/health")
async def health_check(request: Request):
    """Check the store and the authenticator wiring."""
    authenticator = getattr(request.app.state, "authenticator", None)
    database = await _database_status()

    pat_usage = None
    remote_identity = "disabled"
    if authenticator is not None:
        if authenticator.remote_client is not None:
            remote_identity = "configured"
        recorder = authenticator.usage_recorder
        if recorder is not None:
            pat_usage = {"running": recorder.running, "pending": recorder.pending}

    healthy = database == "ok" and authenticator is not None
    return {
        "status": "healthy" if healthy else "degraded",
        "version": __version__,
        "database": database,
        "authenticator": "ok" if authenticator is not None else "not started",
        "remote_identity": remote_identity,
        "pat_usage": pat_usage,
    }
