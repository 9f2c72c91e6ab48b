"""OAuth Callback Server

127.0.0.1 포트에 로컬 HTTP 서버를 띄워 OAuth redirect를 한 번만 받습니다.

- state가 일치하는 첫 번째 code만 수락 (Granted)
- error 파라미터는 Denied로 종료
- state 불일치 요청은 400으로 거절하고 계속 대기
- 타임아웃 시 TimedOut

서버는 어떤 경로로 끝나든 소켓을 닫습니다.
"""

import asyncio
import logging
import math
import secrets
import threading
import time
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlparse

from oxa.auth.exceptions import ServerError
from oxa.auth.server.ports import LOOPBACK_HOST

logger = logging.getLogger(__name__)

# handle_request() 한 번의 최대 대기 시간 (초)
POLL_INTERVAL = 0.5


@dataclass(frozen=True)
class Granted:
    code: str

    def __repr__(self) -> str:
        return "Granted(code=***)"


@dataclass(frozen=True)
class Denied:
    reason: str


@dataclass(frozen=True)
class InvalidState:
    pass


@dataclass(frozen=True)
class TimedOut:
    pass


CallbackOutcome = Granted | Denied | InvalidState | TimedOut


def states_match(received: str, expected: str) -> bool:
    """state 비교 (상수 시간)"""
    return secrets.compare_digest(received.encode(), expected.encode())


SUCCESS_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>인증 성공</title></head>
<body style="font-family: sans-serif; text-align: center; padding-top: 20vh;">
    <h1>✅ 인증 성공!</h1>
    <p>이 창을 닫고 터미널로 돌아가세요.</p>
    <script>setTimeout(() => window.close(), 3000);</script>
</body>
</html>
"""

ERROR_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>인증 실패</title></head>
<body style="font-family: sans-serif; text-align: center; padding-top: 20vh;">
    <h1>❌ {title}</h1>
    <p>{message}</p>
</body>
</html>
"""


class _CallbackHTTPServer(HTTPServer):
    """세션별 상태를 들고 있는 HTTPServer.

    핸들러 클래스 변수 대신 서버 인스턴스에 결과를 저장합니다.
    """

    def __init__(self, address, expected_state: str):
        super().__init__(address, OAuthCallbackHandler)
        self.expected_state = expected_state
        self.outcome: Granted | Denied | None = None
        self.state_mismatches = 0
        # 요청 없이 끝난 handle_request() 횟수
        self.idle_polls = 0

    def handle_timeout(self):
        self.idle_polls += 1

    def handle_error(self, request, client_address):
        """브라우저가 응답 도중 연결을 끊는 경우 등 (stderr 대신 로그)."""
        logger.debug("Error while handling callback request", exc_info=True)


class OAuthCallbackHandler(BaseHTTPRequestHandler):
    """OAuth Callback 핸들러."""

    server: _CallbackHTTPServer
    # 요청을 보내지 않는 연결이 서버를 막지 않도록
    timeout = 5

    def log_message(self, format, *args):
        """기본 stderr 로그 비활성화 (쿼리에 code/state 포함)."""
        pass

    def do_GET(self):
        """GET 요청 처리 (OAuth callback)."""
        parsed = urlparse(self.path)
        logger.debug("Received request: %s", parsed.path)

        # 이미 결과가 나왔으면 처리하지 않음
        if self.server.outcome is not None:
            self._send_page(503, "종료됨", "이미 인증 요청이 처리되었습니다.")
            return

        params = parse_qs(parsed.query)

        if "error" in params:
            error = params["error"][0]
            logger.warning("OAuth error from provider: %s", error)
            if error == "access_denied":
                reason = "user declined"
                message = "애플리케이션 접근을 거부했습니다."
            else:
                reason = "flow failed"
                message = "인증에 실패했습니다."
            # 응답 쓰기가 실패해도 결과는 남도록 먼저 기록
            self.server.outcome = Denied(reason)
            self._send_page(400, "인증 실패", message)
            return

        if "code" in params and "state" in params:
            if states_match(params["state"][0], self.server.expected_state):
                self.server.outcome = Granted(params["code"][0])
                self._send_success()
                return
            self.server.state_mismatches += 1
            logger.warning("Rejected callback with mismatched state")
            self._send_page(400, "보안 오류", "state 파라미터가 올바르지 않습니다.")
            return

        # favicon.ico 등 브라우저 자동 요청 무시
        if parsed.path in ["/favicon.ico", "/robots.txt"]:
            self.send_response(204)
            self.end_headers()
            return

        self.send_response(404)
        self.end_headers()

    def _send_success(self):
        self.send_response(200)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.end_headers()
        self.wfile.write(SUCCESS_PAGE.encode())

    def _send_page(self, status: int, title: str, message: str):
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.end_headers()
        self.wfile.write(ERROR_PAGE.format(title=title, message=message).encode())


class CallbackServer:
    """로컬 콜백 서버 (인증 시도 1회 전용).

    Example:
        async with CallbackServer(port, expected_state, timeout=300) as server:
            outcome = await asyncio.wrap_future(server.start())
    """

    def __init__(
        self,
        port: int,
        expected_state: str,
        timeout: float,
        poll_interval: float = POLL_INTERVAL,
        max_attempts: int | None = None,
    ):
        """초기화.

        Args:
            port: 바인딩할 포트
            expected_state: 기대하는 state 값
            timeout: 대기 시간 (초, 벽시계 기준)
            poll_interval: 요청 대기 1회당 최대 시간 (초)
            max_attempts: 유휴 대기 반복 상한 (시계 이상 대비, None이면 자동)
        """
        self.port = port
        self.timeout = timeout
        self.poll_interval = poll_interval
        if max_attempts is None:
            max_attempts = math.ceil(timeout / poll_interval) * 2 + 10
        self.max_attempts = max_attempts
        self._expected_state = expected_state
        self._server: _CallbackHTTPServer | None = None
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._future: Future = Future()

    @property
    def address(self) -> str:
        return f"http://{LOOPBACK_HOST}:{self.port}"

    def start(self) -> Future:
        """서버 시작.

        Returns:
            Future: CallbackOutcome으로 한 번만 완료됨

        Raises:
            ServerError: 포트 바인딩 실패 (재시도하지 않음)
        """
        if self._thread is not None:
            raise ServerError("callback server already started")
        try:
            self._server = _CallbackHTTPServer(
                (LOOPBACK_HOST, self.port), self._expected_state
            )
        except OSError as e:
            logger.error("Failed to bind %s:%d", LOOPBACK_HOST, self.port)
            raise ServerError(f"cannot bind port {self.port}: {e.strerror}") from e
        self._server.timeout = self.poll_interval
        logger.debug("Callback server on %s:%d", LOOPBACK_HOST, self.port)

        # 호출 측이 Future를 취소하면 서버도 종료
        self._future.add_done_callback(self._on_future_done)

        self._thread = threading.Thread(
            target=self._serve, name=f"oauth-callback-{self.port}", daemon=True
        )
        self._thread.start()
        return self._future

    def stop(self, wait: float = 2.0) -> None:
        """서버 중지 및 포트 해제."""
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=wait)
        self._resolve(TimedOut())

    def __enter__(self) -> "CallbackServer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    async def __aenter__(self) -> "CallbackServer":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        # join은 최대 poll_interval만큼 막히므로 이벤트 루프 밖에서
        await asyncio.to_thread(self.stop)

    def _on_future_done(self, future: Future) -> None:
        if future.cancelled():
            logger.debug("Callback wait cancelled, stopping server")
            self._stop.set()

    def _resolve(self, outcome: CallbackOutcome) -> None:
        try:
            self._future.set_result(outcome)
        except InvalidStateError:
            # 이미 완료되었거나 취소됨
            pass

    def _fail(self, error: ServerError) -> None:
        try:
            self._future.set_exception(error)
        except InvalidStateError:
            pass

    def _serve(self) -> None:
        server = self._server
        deadline = time.monotonic() + self.timeout
        outcome: CallbackOutcome = TimedOut()
        logger.debug("Listening on port %d (timeout: %ss)", self.port, self.timeout)
        try:
            while not self._stop.is_set():
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning("Timed out waiting for OAuth callback")
                    break
                # 상한은 유휴 대기만 셈 (처리한 요청은 제외)
                if server.idle_polls >= self.max_attempts:
                    logger.warning("Callback attempt ceiling reached")
                    if server.state_mismatches:
                        outcome = InvalidState()
                    break
                server.timeout = min(self.poll_interval, remaining)
                server.handle_request()
                if server.outcome is not None:
                    outcome = server.outcome
                    break
        except OSError as e:
            logger.exception("Callback server failed")
            self._fail(ServerError(f"callback server IO error: {e.strerror}"))
        finally:
            server.server_close()
            logger.debug("Callback server closed")
            self._resolve(outcome)
