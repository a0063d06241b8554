from __future__ import annotations

import types
from datetime import UTC, datetime
from typing import Any
from urllib.error import HTTPError
from urllib.parse import parse_qs, urlencode, urlsplit
from urllib.request import urlopen

import pytest

from ytt.errors import AuthError
from ytt.models.oauth_contracts import OAuthClientConfig
from ytt.services.authorization_flow import (
    ALREADY_HANDLED_PAGE,
    SUCCESS_PAGE,
    AuthorizationFlow,
    AuthorizationState,
    CallbackListener,
    CallbackResult,
    OneShotHandoff,
)

CLIENT_CONFIG = OAuthClientConfig(client_id="client-id", client_secret="client-secret")


def _get(url: str) -> tuple[int, str]:
    try:
        with urlopen(url, timeout=5) as response:
            return response.status, response.read().decode("utf-8")
    except HTTPError as exc:
        return exc.code, exc.read().decode("utf-8")


def _listener(expected_state: str = "state-1") -> CallbackListener:
    return CallbackListener(
        host="127.0.0.1",
        port=0,
        expected_state=expected_state,
        shutdown_grace_seconds=1.0,
    )


def test_one_shot_handoff_accepts_only_first_offer() -> None:
    handoff = OneShotHandoff()
    assert handoff.offer(CallbackResult(code="first")) is True
    assert handoff.offer(CallbackResult(code="second")) is False
    assert handoff.take(timeout=0.1).code == "first"
    assert handoff.take(timeout=0.1).code == "first"


def test_one_shot_handoff_take_times_out() -> None:
    with pytest.raises(TimeoutError):
        OneShotHandoff().take(timeout=0.05)


def test_listener_delivers_code_once_and_ignores_later_requests() -> None:
    with _listener() as listener:
        base_url = f"http://127.0.0.1:{listener.port}/"

        status, body = _get(base_url + "?" + urlencode({"code": "ABC", "state": "state-1"}))
        assert (status, body) == (200, SUCCESS_PAGE)

        status, body = _get(base_url + "?" + urlencode({"code": "XYZ", "state": "state-1"}))
        assert (status, body) == (409, ALREADY_HANDLED_PAGE)

        result = listener.wait(timeout=1)
        assert result == CallbackResult(code="ABC")


def test_listener_request_without_code_reports_failure() -> None:
    with _listener() as listener:
        status, _ = _get(f"http://127.0.0.1:{listener.port}/?state=state-1")
        assert status == 400

        result = listener.wait(timeout=1)
        assert result.code is None
        assert result.error == "no code received"


def test_listener_rejects_state_mismatch() -> None:
    with _listener(expected_state="expected") as listener:
        _get(f"http://127.0.0.1:{listener.port}/?code=ABC&state=forged")

        result = listener.wait(timeout=1)
        assert result.code is None
        assert result.error == "state mismatch"


def test_listener_other_paths_do_not_consume_handoff() -> None:
    with _listener() as listener:
        status, _ = _get(f"http://127.0.0.1:{listener.port}/favicon.ico")
        assert status == 404

        _get(f"http://127.0.0.1:{listener.port}/?code=ABC&state=state-1")
        assert listener.wait(timeout=1).code == "ABC"


def test_listener_redirect_uri_uses_bound_port() -> None:
    with _listener() as listener:
        assert listener.port > 0
        assert listener.redirect_uri == f"http://localhost:{listener.port}"


def test_listener_bind_failure_raises_auth_error() -> None:
    with _listener() as first:
        second = CallbackListener(
            host="127.0.0.1",
            port=first.port,
            expected_state="state-1",
            shutdown_grace_seconds=1.0,
        )
        with pytest.raises(AuthError, match="Unable to start OAuth callback listener"):
            second.start()


class _FakeFlow:
    instances: list[_FakeFlow] = []
    fetch_error: Exception | None = None

    def __init__(self, client_config: dict[str, Any], scopes: list[str], redirect_uri: str) -> None:
        self.client_config = client_config
        self.scopes = scopes
        self.redirect_uri = redirect_uri
        self.authorization_kwargs: dict[str, Any] = {}
        self.fetched_codes: list[str] = []
        self.credentials: Any = None

    @classmethod
    def from_client_config(
        cls,
        client_config: dict[str, Any],
        scopes: list[str],
        redirect_uri: str,
    ) -> _FakeFlow:
        instance = cls(client_config, scopes, redirect_uri)
        cls.instances.append(instance)
        return instance

    def authorization_url(self, **kwargs: Any) -> tuple[str, str]:
        self.authorization_kwargs = kwargs
        query = urlencode({"state": kwargs["state"], "redirect_uri": self.redirect_uri})
        return f"https://accounts.example/o/oauth2/auth?{query}", kwargs["state"]

    def fetch_token(self, *, code: str) -> None:
        self.fetched_codes.append(code)
        if self.fetch_error is not None:
            raise self.fetch_error
        self.credentials = types.SimpleNamespace(
            token="access-from-code",
            refresh_token="refresh-from-code",
            expiry=datetime(2030, 1, 1, 0, 0),
        )


@pytest.fixture
def fake_flow(monkeypatch: pytest.MonkeyPatch) -> type[_FakeFlow]:
    _FakeFlow.instances = []
    _FakeFlow.fetch_error = None

    def fake_import_module(name: str) -> object:
        if name == "google_auth_oauthlib.flow":
            return types.SimpleNamespace(Flow=_FakeFlow)
        raise AssertionError(f"Unexpected module import: {name}")

    monkeypatch.setattr("ytt.services.authorization_flow.import_module", fake_import_module)
    return _FakeFlow


def _browser_redirect(*, code: str | None = "ABC", state: str | None = None) -> Any:
    seen_urls: list[str] = []

    def _open(consent_url: str) -> None:
        seen_urls.append(consent_url)
        params = parse_qs(urlsplit(consent_url).query)
        redirect_port = urlsplit(params["redirect_uri"][0]).port
        query: dict[str, str] = {"state": state or params["state"][0]}
        if code is not None:
            query["code"] = code
        _get(f"http://127.0.0.1:{redirect_port}/?{urlencode(query)}")

    _open.seen_urls = seen_urls  # type: ignore[attr-defined]
    return _open


def _flow(on_consent_url: Any, *, timeout: float | None = None) -> AuthorizationFlow:
    return AuthorizationFlow(
        CLIENT_CONFIG,
        host="127.0.0.1",
        port=0,
        shutdown_grace_seconds=1.0,
        consent_timeout_seconds=timeout,
        on_consent_url=on_consent_url,
    )


def test_flow_exchanges_received_code_for_token(fake_flow: type[_FakeFlow]) -> None:
    browser = _browser_redirect(code="ABC")
    flow = _flow(browser)

    token = flow.run()

    assert token.access_token == "access-from-code"
    assert token.refresh_token == "refresh-from-code"
    assert token.expiry == datetime(2030, 1, 1, tzinfo=UTC)
    assert flow.state == AuthorizationState.DONE

    oauth_flow = fake_flow.instances[0]
    assert oauth_flow.fetched_codes == ["ABC"]
    assert oauth_flow.authorization_kwargs["access_type"] == "offline"
    assert oauth_flow.redirect_uri.startswith("http://localhost:")
    assert oauth_flow.client_config["installed"]["client_id"] == "client-id"
    assert len(browser.seen_urls) == 1


def test_flow_uses_random_state_per_attempt(fake_flow: type[_FakeFlow]) -> None:
    _flow(_browser_redirect()).run()
    _flow(_browser_redirect()).run()

    first_state = fake_flow.instances[0].authorization_kwargs["state"]
    second_state = fake_flow.instances[1].authorization_kwargs["state"]
    assert first_state != second_state


def test_flow_without_code_fails_and_skips_exchange(fake_flow: type[_FakeFlow]) -> None:
    flow = _flow(_browser_redirect(code=None))

    with pytest.raises(AuthError, match="no code received"):
        flow.run()

    assert fake_flow.instances[0].fetched_codes == []
    assert flow.state == AuthorizationState.DONE


def test_flow_with_forged_state_fails(fake_flow: type[_FakeFlow]) -> None:
    with pytest.raises(AuthError, match="state mismatch"):
        _flow(_browser_redirect(state="forged")).run()

    assert fake_flow.instances[0].fetched_codes == []


def test_flow_exchange_failure_raises_auth_error(fake_flow: type[_FakeFlow]) -> None:
    fake_flow.fetch_error = RuntimeError("invalid_grant")

    with pytest.raises(AuthError, match="Unable to retrieve token from web: invalid_grant"):
        _flow(_browser_redirect()).run()


def test_flow_consent_timeout_raises_and_closes_listener(fake_flow: type[_FakeFlow]) -> None:
    seen_urls: list[str] = []
    flow = _flow(seen_urls.append, timeout=0.2)

    with pytest.raises(AuthError, match="No authorization code received"):
        flow.run()

    assert flow.state == AuthorizationState.DONE
    redirect_uri = parse_qs(urlsplit(seen_urls[0]).query)["redirect_uri"][0]
    port = urlsplit(redirect_uri).port
    with pytest.raises(OSError):
        urlopen(f"http://127.0.0.1:{port}/?code=late", timeout=1)


def test_flow_bind_failure_ends_failed_then_done(
    fake_flow: type[_FakeFlow], monkeypatch: pytest.MonkeyPatch
) -> None:
    with _listener() as occupied:
        flow = AuthorizationFlow(
            CLIENT_CONFIG,
            host="127.0.0.1",
            port=occupied.port,
            shutdown_grace_seconds=1.0,
            on_consent_url=lambda _url: None,
        )
        visited: list[AuthorizationState] = []
        record_transition = flow._transition  # pyright: ignore[reportPrivateUsage]

        def _recording_transition(state: AuthorizationState) -> None:
            visited.append(state)
            record_transition(state)

        monkeypatch.setattr(flow, "_transition", _recording_transition)

        with pytest.raises(AuthError, match="Unable to start OAuth callback listener"):
            flow.run()

    assert visited == [
        AuthorizationState.LISTENING,
        AuthorizationState.FAILED,
        AuthorizationState.SHUTTING_DOWN,
        AuthorizationState.DONE,
    ]
    assert flow.state == AuthorizationState.DONE
    assert fake_flow.instances == []
