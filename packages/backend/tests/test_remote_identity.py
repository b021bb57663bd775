"""Remote identity tests — delegated trust and shadow accounts.

Learn: The provider is faked with httpx.MockTransport, so every request
the client makes goes through a local handler function. No network.
"""

import httpx
import pytest
from structlog.testing import capture_logs

from conftest import SECRET, ExplodingStore
from tenantauth.auth.authenticator import Authenticator
from tenantauth.auth.errors import (
    ArchivedUserError,
    ConfigurationError,
    MalformedCredentialError,
    RemoteInvalidIdentityError,
    RemoteUnavailableError,
    UserConflictError,
)
from tenantauth.auth.remote import RemoteIdentity, RemoteIdentityClient
from tenantauth.auth.tokens import AccessTokenClaims, sign_access_token
from tenantauth.store.models import Role, RowStatus

PROVIDER_URL = "https://id.example.com/api/user/v1/info"


class FakeProvider:
    """Records requests and answers with a fixed response (or raises)."""

    def __init__(self, status_code=200, json=None, content=None, error=None):
        self.status_code = status_code
        self.json = json
        self.content = content
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error(request)
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, json=self.json)


def _client(provider: FakeProvider, **kwargs) -> RemoteIdentityClient:
    return RemoteIdentityClient(PROVIDER_URL, transport=httpx.MockTransport(provider), **kwargs)


def _timeout(request):
    return httpx.ReadTimeout("timed out", request=request)


def _refused(request):
    return httpx.ConnectError("Connection refused", request=request)


# ═══════════════════════════════════════════════════════════
# RemoteIdentityClient
# ═══════════════════════════════════════════════════════════


class TestRemoteIdentityClient:
    @pytest.mark.asyncio
    async def test_valid_identity(self):
        provider = FakeProvider(json={"uid": "x", "username": "newperson"})
        client = _client(provider)

        identity = await client.resolve("Bearer remote-token")

        assert identity == RemoteIdentity(uid="x", username="newperson")
        assert len(provider.requests) == 1
        request = provider.requests[0]
        assert request.method == "GET"
        assert str(request.url) == PROVIDER_URL
        assert request.headers["Authorization"] == "Bearer remote-token"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_numeric_uid_coerced(self):
        client = _client(FakeProvider(json={"uid": 17, "username": "bob"}))
        assert (await client.resolve("Bearer t")).uid == "17"

    @pytest.mark.asyncio
    async def test_missing_uid_allowed(self):
        client = _client(FakeProvider(json={"username": "bob"}))
        assert (await client.resolve("Bearer t")).uid == ""

    @pytest.mark.asyncio
    async def test_other_2xx_accepted(self):
        client = _client(FakeProvider(status_code=201, json={"username": "bob"}))
        assert (await client.resolve("Bearer t")).username == "bob"

    @pytest.mark.asyncio
    async def test_empty_body(self):
        client = _client(FakeProvider(status_code=200, content=b""))
        with pytest.raises(RemoteInvalidIdentityError):
            await client.resolve("Bearer t")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [301, 400, 401, 403, 404, 500, 503])
    async def test_non_2xx_is_unavailable(self, status):
        client = _client(FakeProvider(status_code=status, json={"username": "bob"}))
        with pytest.raises(RemoteUnavailableError) as exc_info:
            await client.resolve("Bearer t")
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [_timeout, _refused])
    async def test_network_errors_are_unavailable(self, error):
        provider = FakeProvider(error=error)
        client = _client(provider)
        with pytest.raises(RemoteUnavailableError):
            await client.resolve("Bearer t")
        assert len(provider.requests) == 1  # no internal retry

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "json",
        [
            {"uid": "x", "username": ""},
            {"uid": "x", "username": "   "},
            {"uid": "x"},
            {"uid": "x", "username": 42},
            {"uid": "x", "username": None},
            {"uid": "x", "username": " bob "},
            {"uid": "x", "username": "bob\n"},
            ["username", "bob"],
            "bob",
        ],
    )
    async def test_unusable_payload(self, json):
        client = _client(FakeProvider(json=json))
        with pytest.raises(RemoteInvalidIdentityError):
            await client.resolve("Bearer t")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = _client(FakeProvider(content=b"<html>nope</html>"))
        with pytest.raises(RemoteInvalidIdentityError):
            await client.resolve("Bearer t")

    def test_empty_url_rejected(self):
        with pytest.raises(ValueError):
            RemoteIdentityClient("")

    @pytest.mark.asyncio
    async def test_shared_client_not_closed(self):
        provider = FakeProvider(json={"username": "bob"})
        shared = httpx.AsyncClient(transport=httpx.MockTransport(provider))
        client = RemoteIdentityClient(PROVIDER_URL, client=shared)
        await client.aclose()
        assert not shared.is_closed
        assert (await client.resolve("Bearer t")).username == "bob"
        await shared.aclose()


# ═══════════════════════════════════════════════════════════
# Remote path in the Authenticator
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_shadow_account_created_on_first_sight(store, clock):
    """Provider returns {"uid":"x","username":"newperson"}; no local user yet."""
    provider = FakeProvider(json={"uid": "x", "username": "newperson"})
    auth = Authenticator(store, SECRET, clock=clock, remote_client=_client(provider))

    result = await auth.authenticate("Bearer remote-token")

    assert result is not None
    assert result.claims is None
    user = result.user
    assert user.username == "newperson"
    assert user.password_hash == ""
    assert user.role == Role.USER
    assert user.row_status == RowStatus.NORMAL
    assert user.id is not None
    assert await store.get_user_by_username("newperson") == user
    assert provider.requests[0].headers["Authorization"] == "Bearer remote-token"


@pytest.mark.asyncio
async def test_existing_user_returned_untouched(store, alice, clock):
    provider = FakeProvider(json={"uid": "remote-7", "username": "alice"})
    auth = Authenticator(store, SECRET, clock=clock, remote_client=_client(provider))

    result = await auth.authenticate("Bearer remote-token")

    assert result.user == alice
    assert result.user.role == Role.ADMIN
    assert result.user.nickname == "Alice"
    assert not any(c[0] == "create_user" for c in store.calls)


@pytest.mark.asyncio
async def test_shadow_account_reused_on_second_sight(store, clock):
    provider = FakeProvider(json={"uid": "x", "username": "newperson"})
    auth = Authenticator(store, SECRET, clock=clock, remote_client=_client(provider))

    first = await auth.authenticate("Bearer remote-token")
    second = await auth.authenticate("Bearer remote-token")

    assert first.user.id == second.user.id
    assert [c[0] for c in store.calls].count("create_user") == 1


@pytest.mark.asyncio
async def test_empty_username_never_creates_or_authenticates(store, clock):
    provider = FakeProvider(json={"uid": "x", "username": ""})
    auth = Authenticator(store, SECRET, clock=clock, remote_client=_client(provider))

    assert await auth.authenticate("Bearer remote-token") is None
    with pytest.raises(RemoteInvalidIdentityError):
        await auth.authenticate_by_remote_identity("Bearer remote-token")
    assert store.users == {}
    assert store.calls == []


@pytest.mark.asyncio
async def test_archived_local_user_rejected(store, archived_user, clock):
    provider = FakeProvider(json={"uid": "x", "username": "ghost"})
    auth = Authenticator(store, SECRET, clock=clock, remote_client=_client(provider))

    assert await auth.authenticate("Bearer remote-token") is None
    with pytest.raises(ArchivedUserError):
        await auth.authenticate_by_remote_identity("Bearer remote-token")


@pytest.mark.asyncio
async def test_remote_outage_logged_as_warning(store, clock):
    provider = FakeProvider(error=_refused)
    auth = Authenticator(store, SECRET, clock=clock, remote_client=_client(provider))

    with capture_logs() as logs:
        assert await auth.authenticate("Bearer remote-token") is None

    warning = next(e for e in logs if e["event"] == "auth.remote_unavailable")
    assert warning["log_level"] == "warning"
    assert warning["path"] == "remote_identity"
    assert all("remote-token" not in str(e) for e in logs)


@pytest.mark.asyncio
async def test_remote_outage_surfaced_by_direct_operation(store, clock):
    auth = Authenticator(
        store, SECRET, clock=clock, remote_client=_client(FakeProvider(status_code=503))
    )
    with pytest.raises(RemoteUnavailableError) as exc_info:
        await auth.authenticate_by_remote_identity("Bearer remote-token")
    assert exc_info.value.retryable


@pytest.mark.asyncio
async def test_valid_access_token_skips_remote(clock):
    provider = FakeProvider(json={"uid": "x", "username": "someone"})
    auth = Authenticator(ExplodingStore(), SECRET, clock=clock, remote_client=_client(provider))
    token = sign_access_token(
        AccessTokenClaims.issue("42", "alice", "USER", "NORMAL", now=clock()), SECRET
    )

    result = await auth.authenticate(f"Bearer {token}")

    assert result.claims.user_id == 42
    assert provider.requests == []


@pytest.mark.asyncio
async def test_invalid_access_token_falls_back_to_remote(store, clock):
    provider = FakeProvider(json={"uid": "x", "username": "carol"})
    auth = Authenticator(store, SECRET, clock=clock, remote_client=_client(provider))
    token = sign_access_token(
        AccessTokenClaims.issue("abc", "alice", "USER", "NORMAL", now=clock()), SECRET
    )

    result = await auth.authenticate(f"Bearer {token}")

    assert result.user.username == "carol"
    assert len(provider.requests) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer"])
async def test_no_bearer_token_never_calls_remote(store, clock, header):
    provider = FakeProvider(json={"uid": "x", "username": "someone"})
    auth = Authenticator(store, SECRET, clock=clock, remote_client=_client(provider))

    assert await auth.authenticate(header) is None
    assert provider.requests == []


@pytest.mark.asyncio
async def test_pat_never_forwarded_to_remote(store, clock):
    provider = FakeProvider(json={"uid": "x", "username": "someone"})
    auth = Authenticator(store, SECRET, clock=clock, remote_client=_client(provider))

    assert await auth.authenticate("Bearer pat_unknown") is None
    assert provider.requests == []


@pytest.mark.asyncio
async def test_shadow_user_conflict(store, clock):
    """Another request created the same username first — retryable, not fatal."""
    provider = FakeProvider(json={"uid": "x", "username": "racer"})
    auth = Authenticator(store, SECRET, clock=clock, remote_client=_client(provider))

    async def lost_race(username):
        store.calls.append(("get_user_by_username", username))
        return None

    store.add_user("racer")
    store.get_user_by_username = lost_race

    with pytest.raises(UserConflictError) as exc_info:
        await auth.authenticate_by_remote_identity("Bearer remote-token")
    assert exc_info.value.retryable

    with capture_logs() as logs:
        assert await auth.authenticate("Bearer remote-token") is None
    assert any(e["event"] == "auth.shadow_user_conflict" for e in logs)


@pytest.mark.asyncio
async def test_direct_operation_without_remote_client(authenticator):
    with pytest.raises(ConfigurationError):
        await authenticator.authenticate_by_remote_identity("Bearer t")


@pytest.mark.asyncio
async def test_direct_operation_empty_header(store, clock):
    provider = FakeProvider(json={"username": "bob"})
    auth = Authenticator(store, SECRET, clock=clock, remote_client=_client(provider))
    with pytest.raises(MalformedCredentialError):
        await auth.authenticate_by_remote_identity("")
    assert provider.requests == []


@pytest.mark.asyncio
async def test_padded_username_never_joins_or_creates(store, alice, clock):
    provider = FakeProvider(json={"uid": "x", "username": " alice "})
    auth = Authenticator(store, SECRET, clock=clock, remote_client=_client(provider))

    assert await auth.authenticate("Bearer remote-token") is None
    with pytest.raises(RemoteInvalidIdentityError):
        await auth.authenticate_by_remote_identity("Bearer remote-token")
    assert list(store.users) == [alice.id]
    assert store.calls == []
