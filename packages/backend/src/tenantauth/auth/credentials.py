"""Bearer extraction and credential classification.

Learn: The credential kind is decided exactly once, from the token's
syntax, before any verification happens:

- PAT-prefixed token → PERSONAL_ACCESS_TOKEN (hash lookup only)
- anything else      → BEARER_TOKEN (signed access token, then the
                       remote identity provider as a fallback)

The Authenticator maps each kind to a fixed list of paths, so there
are no scattered "is this a PAT?" checks further down the flow.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from tenantauth.auth.pat import PERSONAL_ACCESS_TOKEN_PREFIX, is_personal_access_token


class CredentialKind(str, Enum):
    BEARER_TOKEN = "bearer_token"
    PERSONAL_ACCESS_TOKEN = "personal_access_token"


@dataclass(frozen=True)
class Credential:
    kind: CredentialKind
    token: str
    authorization: str  # original header value, forwarded verbatim to the remote provider

    def __repr__(self) -> str:
        # Keep secrets out of reprs that end up in logs and tracebacks
        return f"Credential(kind={self.kind.value!r})"


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the token from a `Bearer <token>` header, or "" if absent/malformed."""
    if not authorization:
        return ""
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""
    return parts[1]


def classify_credential(
    authorization: Optional[str],
    pat_prefix: str = PERSONAL_ACCESS_TOKEN_PREFIX,
) -> Optional[Credential]:
    """Classify the Authorization header, or None when there is no bearer token."""
    token = extract_bearer_token(authorization)
    if not token:
        return None

    if is_personal_access_token(token, pat_prefix):
        kind = CredentialKind.PERSONAL_ACCESS_TOKEN
    else:
        kind = CredentialKind.BEARER_TOKEN
    return Credential(kind=kind, token=token, authorization=authorization)
