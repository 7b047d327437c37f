try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone
from http import HTTPStatus

import httpx
import pytest

from stargate.clients import (
    GitHubStarClient,
    SQLiteStore,
    StarGateApiClient,
    StarGateApiError,
)
from stargate.dependencies import get_session_service, get_star_gate_service
from stargate.main import app
from stargate.models.options import StarGateOptions
from stargate.models.verification import SessionRecord
from stargate.schemas import RefreshResponse, SignInResponse, StarStatusResponse
from stargate.services import (
    ErrorCode,
    GitHubAccountService,
    GitHubStarVerifier,
    SessionService,
    StarGateError,
    StarGateService,
    StarVerificationCache,
)
from stargate.utils.http import RetryConfig

CHECKED_AT = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class StubSessions:
    def __init__(self) -> None:
        self.sessions = {
            "valid-token": SessionRecord(
                id="session-1",
                user_id="test-user-123",
                token="valid-token",
                expires_at=CHECKED_AT + timedelta(days=7),
            )
        }

    async def get_by_token(self, token: str):
        return self.sessions.get(token)


class StubStarGate:
    def __init__(self) -> None:
        self.status_calls: list[str] = []
        self.refresh_calls: list[str] = []
        self.refresh_error: StarGateError | None = None
        self.refresh_fallback: str | None = None
        self.sign_in_error: StarGateError | None = None
        self.sign_ins: list[dict] = []

    async def sign_in(self, **kwargs) -> SignInResponse:
        self.sign_ins.append(kwargs)
        if self.sign_in_error is not None:
            raise self.sign_in_error
        return SignInResponse(
            session_token="issued-token",
            expires_at=CHECKED_AT + timedelta(days=7),
            has_star_access=True,
            repository="sst/star-pay",
        )

    async def get_status(self, user_id: str) -> StarStatusResponse:
        self.status_calls.append(user_id)
        return StarStatusResponse(
            has_starred=True,
            last_checked=CHECKED_AT,
            cache_expires=CHECKED_AT + timedelta(minutes=15),
            repository="sst/star-pay",
        )

    async def refresh_status(self, user_id: str) -> RefreshResponse:
        self.refresh_calls.append(user_id)
        if self.refresh_error is not None:
            raise self.refresh_error
        return RefreshResponse(
            has_starred=False,
            repository="sst/star-pay",
            refreshed_at=CHECKED_AT,
            error=self.refresh_fallback,
        )


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def star_gate() -> StubStarGate:
    return StubStarGate()


@pytest.fixture
def overrides(star_gate):
    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            get_session_service: lambda: StubSessions(),
            get_star_gate_service: lambda: star_gate,
        }
    )
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client(overrides):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as async_client:
        yield async_client


async def test_healthcheck(client) -> None:
    response = await client.get("/api/health")

    assert response.status_code == HTTPStatus.OK
    assert response.json() == {"status": "ok"}


async def test_status_returns_camel_case_payload(client, star_gate) -> None:
    response = await client.get(
        "/api/star-gate/status", headers={"Authorization": "Bearer valid-token"}
    )

    assert response.status_code == HTTPStatus.OK
    body = response.json()
    assert body["hasStarred"] is True
    assert body["repository"] == "sst/star-pay"
    assert body["gracePeriodActive"] is False
    assert body["gracePeriodEnds"] is None
    assert body["lastChecked"].startswith("2025-01-01T12:00:00")
    assert star_gate.status_calls == ["test-user-123"]


@pytest.mark.parametrize(
    "headers",
    [{}, {"Authorization": "Bearer unknown"}, {"Authorization": "Basic valid-token"}],
)
async def test_status_requires_session(client, star_gate, headers) -> None:
    response = await client.get("/api/star-gate/status", headers=headers)

    assert response.status_code == HTTPStatus.UNAUTHORIZED
    assert response.json()["detail"]["code"] == "NOT_AUTHENTICATED"
    assert star_gate.status_calls == []


async def test_refresh_returns_fresh_status(client, star_gate) -> None:
    star_gate.refresh_fallback = "GitHub API rate limit or permission issue (status: 403)"

    response = await client.post(
        "/api/star-gate/refresh", headers={"Authorization": "Bearer valid-token"}
    )

    assert response.status_code == HTTPStatus.OK
    body = response.json()
    assert body["hasStarred"] is False
    assert body["error"] == star_gate.refresh_fallback
    assert "refreshedAt" in body
    assert star_gate.refresh_calls == ["test-user-123"]


async def test_refresh_maps_domain_errors(client, star_gate) -> None:
    star_gate.refresh_error = StarGateError(
        ErrorCode.GITHUB_TOKEN_MISSING,
        "GitHub account not linked or token expired",
        HTTPStatus.BAD_REQUEST,
    )

    response = await client.post(
        "/api/star-gate/refresh", headers={"Authorization": "Bearer valid-token"}
    )

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.json()["detail"] == {
        "code": "GITHUB_TOKEN_MISSING",
        "message": "GitHub account not linked or token expired",
    }


async def test_api_client_reads_status(overrides, star_gate) -> None:
    api = StarGateApiClient(
        "http://testserver/api",
        "valid-token",
        transport=httpx.ASGITransport(app=app),
    )

    status = await api.check_star_status()

    assert isinstance(status, StarStatusResponse)
    assert status.has_starred is True
    assert status.cache_expires == CHECKED_AT + timedelta(minutes=15)


async def test_api_client_refresh(overrides, star_gate) -> None:
    api = StarGateApiClient(
        "http://testserver/api",
        "valid-token",
        transport=httpx.ASGITransport(app=app),
    )

    refreshed = await api.refresh_star_status()

    assert refreshed.has_starred is False
    assert refreshed.refreshed_at == CHECKED_AT


async def test_api_client_raises_structured_errors(overrides) -> None:
    api = StarGateApiClient(
        "http://testserver/api",
        "expired-token",
        transport=httpx.ASGITransport(app=app),
    )

    with pytest.raises(StarGateApiError) as excinfo:
        await api.check_star_status()

    assert excinfo.value.status_code == HTTPStatus.UNAUTHORIZED
    assert excinfo.value.code == "NOT_AUTHENTICATED"
    assert excinfo.value.message == "Not authenticated"


SIGN_IN_BODY = {
    "userId": "test-user-123",
    "accountId": "42",
    "accessToken": "gho_test_token_12345",
}


async def test_sign_in_issues_session_for_host(client, star_gate) -> None:
    response = await client.post(
        "/api/star-gate/sign-in",
        json=SIGN_IN_BODY,
        headers={"X-Star-Gate-Key": "test-host-key"},
    )

    assert response.status_code == HTTPStatus.CREATED
    body = response.json()
    assert body["sessionToken"] == "issued-token"
    assert body["hasStarAccess"] is True
    assert star_gate.sign_ins == [
        {
            "user_id": "test-user-123",
            "account_id": "42",
            "access_token": "gho_test_token_12345",
        }
    ]


@pytest.mark.parametrize("headers", [{}, {"X-Star-Gate-Key": "wrong"}])
async def test_sign_in_requires_host_key(client, star_gate, headers) -> None:
    response = await client.post(
        "/api/star-gate/sign-in", json=SIGN_IN_BODY, headers=headers
    )

    assert response.status_code == HTTPStatus.UNAUTHORIZED
    assert response.json()["detail"]["code"] == "NOT_AUTHENTICATED"
    assert star_gate.sign_ins == []


async def test_sign_in_maps_denial(client, star_gate) -> None:
    star_gate.sign_in_error = StarGateError(
        ErrorCode.STAR_REQUIRED,
        "Please star the repository sst/star-pay to access this application.",
    )

    response = await client.post(
        "/api/star-gate/sign-in",
        json=SIGN_IN_BODY,
        headers={"X-Star-Gate-Key": "test-host-key"},
    )

    assert response.status_code == HTTPStatus.FORBIDDEN
    assert response.json()["detail"]["code"] == "STAR_REQUIRED"


async def test_sign_in_rejects_incomplete_body(client, star_gate) -> None:
    response = await client.post(
        "/api/star-gate/sign-in",
        json={"userId": "test-user-123", "accountId": "42", "accessToken": ""},
        headers={"X-Star-Gate-Key": "test-host-key"},
    )

    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    assert star_gate.sign_ins == []


async def test_signed_in_session_reaches_status(tmp_path) -> None:
    store = SQLiteStore(str(tmp_path / "flow.db"))
    options = StarGateOptions(repository="sst/star-pay")
    cache = StarVerificationCache(store)
    verifier = GitHubStarVerifier(
        options,
        cache,
        client=GitHubStarClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(204)),
            retry_config=RetryConfig(delay_unit=0),
        ),
    )
    sessions = SessionService(store)
    service = StarGateService(
        options=options,
        verifier=verifier,
        cache=cache,
        accounts=GitHubAccountService(store, secret="test-secret"),
        sessions=sessions,
    )

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            get_session_service: lambda: sessions,
            get_star_gate_service: lambda: service,
        }
    )
    try:
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url="http://testserver",
        ) as http:
            signed_in = await http.post(
                "/api/star-gate/sign-in",
                json=SIGN_IN_BODY,
                headers={"X-Star-Gate-Key": "test-host-key"},
            )
            token = signed_in.json()["sessionToken"]
            status = await http.get(
                "/api/star-gate/status",
                headers={"Authorization": f"Bearer {token}"},
            )
    finally:
        app.dependency_overrides.clear()

    assert signed_in.status_code == HTTPStatus.CREATED
    assert status.status_code == HTTPStatus.OK
    assert status.json()["hasStarred"] is True
