"""Remote identity client — delegated trust to a third-party provider.

Learn: When a bearer token is not one of ours, the original Authorization
header is forwarded verbatim to the provider's user-info endpoint. A 2xx
JSON response with a non-empty `username` (no leading or trailing
whitespace) is a valid identity; anything else is a failure.

One attempt per call with a short timeout, and no retries here.
A slow provider costs one request a bounded amount of latency;
retry/backoff is a caller concern.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from tenantauth.auth.errors import RemoteInvalidIdentityError, RemoteUnavailableError

DEFAULT_TIMEOUT_SECONDS = 2.0


@dataclass(frozen=True)
class RemoteIdentity:
    uid: str
    username: str


class RemoteIdentityClient:
    """Resolves a forwarded Authorization header to a RemoteIdentity.

    Pass `client` to share a connection pool (the app lifespan does);
    otherwise the client owns one built from `transport`.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("Remote identity URL must not be empty")
        self.url = url
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            transport=transport,
            timeout=timeout,
            follow_redirects=False,
        )

    async def resolve(self, authorization: str) -> RemoteIdentity:
        """Call the provider once.

        Raises RemoteUnavailableError for network errors, timeouts and
        non-2xx statuses; RemoteInvalidIdentityError for unusable bodies.
        """
        try:
            response = await self._client.get(
                self.url,
                headers={"Authorization": authorization, "Accept": "application/json"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise RemoteUnavailableError(
                f"Identity provider unreachable: {type(e).__name__}"
            ) from e

        if not response.is_success:
            raise RemoteUnavailableError(
                f"Identity provider returned {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteInvalidIdentityError("Identity provider returned invalid JSON") from e

        if not isinstance(body, dict):
            raise RemoteInvalidIdentityError("Identity provider returned a non-object body")

        username = body.get("username")
        if not isinstance(username, str) or not username.strip():
            raise RemoteInvalidIdentityError("Identity provider returned no username")
        # Username is the join key to local users; it is never normalised
        if username != username.strip():
            raise RemoteInvalidIdentityError("Identity provider returned a padded username")

        uid = body.get("uid")
        return RemoteIdentity(uid="" if uid is None else str(uid), username=username)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
