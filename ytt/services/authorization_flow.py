from __future__ import annotations

import logging
import secrets
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass
from enum import StrEnum
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from importlib import import_module
from types import TracebackType
from typing import Any
from urllib.parse import parse_qs, urlsplit

from ytt.errors import AuthError, YouTubeServiceError
from ytt.models.oauth_contracts import OAuthClientConfig, OAuthToken

LOGGER = logging.getLogger("ytt.oauth")

SCOPES: tuple[str, ...] = (
    "https://www.googleapis.com/auth/youtube.readonly",
    "https://www.googleapis.com/auth/youtube.force-ssl",
)
REDIRECT_HOST = "localhost"
SUCCESS_PAGE = "Authorization successful! You can close this tab."
FAILURE_PAGE = "Authorization failed: no code received."
ALREADY_HANDLED_PAGE = "Authorization already handled. You can close this tab."


class AuthorizationState(StrEnum):
    IDLE = "idle"
    LISTENING = "listening"
    AWAITING_CODE = "awaiting_code"
    CODE_RECEIVED = "code_received"
    FAILED = "failed"
    SHUTTING_DOWN = "shutting_down"
    DONE = "done"


@dataclass(frozen=True)
class CallbackResult:
    code: str | None
    error: str | None = None


class OneShotHandoff:
    """Single-slot handoff: the first `offer` wins, every later one is refused."""

    def __init__(self) -> None:
        self._future: Future[CallbackResult] = Future()

    def offer(self, result: CallbackResult) -> bool:
        try:
            self._future.set_result(result)
        except InvalidStateError:
            return False
        return True

    def take(self, timeout: float | None = None) -> CallbackResult:
        return self._future.result(timeout=timeout)


class _CallbackServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_port = False

    def __init__(
        self,
        address: tuple[str, int],
        *,
        handoff: OneShotHandoff,
        expected_state: str,
        request_timeout: float,
    ) -> None:
        self.handoff = handoff
        self.expected_state = expected_state
        self.request_timeout = request_timeout
        super().__init__(address, _CallbackHandler)


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackServer

    def setup(self) -> None:
        self.timeout = self.server.request_timeout
        super().setup()

    def do_GET(self) -> None:  # noqa: N802
        parsed = urlsplit(self.path)
        if parsed.path not in ("", "/"):
            self._respond(404, "Not found.")
            return

        result = _callback_result(parse_qs(parsed.query), expected_state=self.server.expected_state)
        if not self.server.handoff.offer(result):
            LOGGER.info("oauth callback ignored; authorization already handled")
            self._respond(409, ALREADY_HANDLED_PAGE)
            return

        if result.code is not None:
            self._respond(200, SUCCESS_PAGE)
        else:
            self._respond(400, FAILURE_PAGE)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        LOGGER.debug("oauth callback request " + format, *args)

    def _respond(self, status: int, message: str) -> None:
        body = message.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


def _callback_result(params: dict[str, list[str]], *, expected_state: str) -> CallbackResult:
    provider_error = _first_param(params, "error")
    if provider_error is not None:
        return CallbackResult(code=None, error=f"provider returned error: {provider_error}")

    code = _first_param(params, "code")
    if code is None:
        return CallbackResult(code=None, error="no code received")

    if not secrets.compare_digest(_first_param(params, "state") or "", expected_state):
        return CallbackResult(code=None, error="state mismatch")
    return CallbackResult(code=code)


def _first_param(params: dict[str, list[str]], name: str) -> str | None:
    for value in params.get(name, []):
        if value.strip():
            return value
    return None


class CallbackListener:
    """Local HTTP listener that captures the redirect of one consent attempt."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        expected_state: str,
        shutdown_grace_seconds: float,
    ) -> None:
        self._host = host
        self._port = port
        self._shutdown_grace_seconds = shutdown_grace_seconds
        self.handoff = OneShotHandoff()
        self._expected_state = expected_state
        self._server: _CallbackServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        if self._server is None:
            return self._port
        return int(self._server.server_address[1])

    @property
    def redirect_uri(self) -> str:
        return f"http://{REDIRECT_HOST}:{self.port}"

    def start(self) -> None:
        try:
            server = _CallbackServer(
                (self._host, self._port),
                handoff=self.handoff,
                expected_state=self._expected_state,
                request_timeout=self._shutdown_grace_seconds,
            )
        except OSError as exc:
            raise AuthError(
                f"Unable to start OAuth callback listener on {self._host}:{self._port}: {exc}"
            ) from exc

        self._server = server
        self._thread = threading.Thread(
            target=server.serve_forever,
            kwargs={"poll_interval": 0.1},
            name="ytt-oauth-callback",
            daemon=True,
        )
        self._thread.start()
        LOGGER.debug("oauth callback listening host=%s port=%s", self._host, self.port)

    def wait(self, timeout: float | None = None) -> CallbackResult:
        try:
            return self.handoff.take(timeout=timeout)
        except TimeoutError as exc:
            raise AuthError(f"No authorization code received within {timeout} seconds") from exc

    def close(self) -> None:
        server = self._server
        if server is None:
            return
        self._server = None

        stopper = threading.Thread(
            target=server.shutdown,
            name="ytt-oauth-callback-shutdown",
            daemon=True,
        )
        stopper.start()
        stopper.join(self._shutdown_grace_seconds)
        if stopper.is_alive():
            LOGGER.warning(
                "oauth callback listener did not stop within grace_seconds=%s; forcing close",
                self._shutdown_grace_seconds,
            )
        server.server_close()
        if self._thread is not None:
            self._thread.join(self._shutdown_grace_seconds)
            self._thread = None

    def __enter__(self) -> CallbackListener:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()


def _log_consent_url(url: str) -> None:
    LOGGER.info("open this URL in a browser to authorize access: %s", url)


class AuthorizationFlow:
    """Interactive consent: listen locally, hand out a consent URL, exchange the code."""

    def __init__(
        self,
        client_config: OAuthClientConfig,
        *,
        host: str = REDIRECT_HOST,
        port: int = 8080,
        shutdown_grace_seconds: float = 5.0,
        consent_timeout_seconds: float | None = None,
        on_consent_url: Callable[[str], None] | None = None,
        scopes: Sequence[str] = SCOPES,
    ) -> None:
        self._client_config = client_config
        self._host = host
        self._port = port
        self._shutdown_grace_seconds = shutdown_grace_seconds
        self._consent_timeout_seconds = consent_timeout_seconds
        self._on_consent_url = on_consent_url or _log_consent_url
        self._scopes = list(scopes)
        self.state = AuthorizationState.IDLE

    def run(self) -> OAuthToken:
        flow_cls = _load_flow_class()
        expected_state = secrets.token_urlsafe(24)
        listener = CallbackListener(
            host=self._host,
            port=self._port,
            expected_state=expected_state,
            shutdown_grace_seconds=self._shutdown_grace_seconds,
        )

        self._transition(AuthorizationState.LISTENING)
        try:
            self._start_listener(listener)
            oauth_flow: Any = flow_cls.from_client_config(
                self._client_config.as_client_secrets(),
                scopes=self._scopes,
                redirect_uri=listener.redirect_uri,
            )
            consent_url, _ = oauth_flow.authorization_url(
                access_type="offline",
                prompt="consent",
                state=expected_state,
            )
            self._transition(AuthorizationState.AWAITING_CODE)
            self._on_consent_url(str(consent_url))

            try:
                result = listener.wait(timeout=self._consent_timeout_seconds)
            except AuthError:
                self._transition(AuthorizationState.FAILED)
                raise

            if result.code is None:
                self._transition(AuthorizationState.FAILED)
                raise AuthError(f"Authorization failed: {result.error or 'no code received'}")

            self._transition(AuthorizationState.CODE_RECEIVED)
            return _exchange_code(oauth_flow, result.code)
        finally:
            self._transition(AuthorizationState.SHUTTING_DOWN)
            listener.close()
            self._transition(AuthorizationState.DONE)

    def _start_listener(self, listener: CallbackListener) -> None:
        try:
            listener.start()
        except AuthError:
            self._transition(AuthorizationState.FAILED)
            raise

    def _transition(self, state: AuthorizationState) -> None:
        LOGGER.debug("oauth flow state %s -> %s", self.state, state)
        self.state = state


def _exchange_code(oauth_flow: Any, code: str) -> OAuthToken:
    try:
        oauth_flow.fetch_token(code=code)
        return OAuthToken.from_credentials(oauth_flow.credentials)
    except Exception as exc:
        raise AuthError(f"Unable to retrieve token from web: {exc}") from exc


def _load_flow_class() -> Any:
    try:
        flow_module = import_module("google_auth_oauthlib.flow")
    except ImportError as exc:  # pragma: no cover - dependency controlled at runtime
        raise YouTubeServiceError("OAuth consent requires the google-auth-oauthlib dependency") from exc
    return flow_module.Flow
