"""Personal access token (PAT) helpers.

Learn: A PAT is an opaque random secret with a recognisable prefix
(e.g. "pat_3f9a..."). The full secret is shown to the user exactly once;
the store only ever sees a SHA-256 hex digest of it. Lookups are by
digest, so the raw secret is never compared or persisted.
"""

import hashlib
import secrets
from typing import NamedTuple

PERSONAL_ACCESS_TOKEN_PREFIX = "pat_"


class GeneratedPAT(NamedTuple):
    token: str  # full secret — only returned on creation
    token_hash: str


def hash_personal_access_token(token: str) -> str:
    """Deterministic one-way hash of the full token string."""
    return hashlib.sha256(token.encode()).hexdigest()


def is_personal_access_token(token: str, prefix: str = PERSONAL_ACCESS_TOKEN_PREFIX) -> bool:
    return bool(token) and token.startswith(prefix)


def generate_personal_access_token(prefix: str = PERSONAL_ACCESS_TOKEN_PREFIX) -> GeneratedPAT:
    """Create a new PAT secret and the hash to store for it."""
    token = f"{prefix}{secrets.token_urlsafe(32)}"
    return GeneratedPAT(token=token, token_hash=hash_personal_access_token(token))
