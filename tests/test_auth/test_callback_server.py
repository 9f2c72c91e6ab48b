"""Callback Server 테스트.

실제 127.0.0.1 소켓으로 콜백 요청을 보내 검증.
"""

import asyncio
import socket

import httpx
import pytest

from oxa.auth.exceptions import ServerError
from oxa.auth.server.callback_server import (
    CallbackServer,
    Denied,
    Granted,
    InvalidState,
    OAuthCallbackHandler,
    TimedOut,
    states_match,
)
from oxa.auth.server.ports import can_bind, find_available_port


@pytest.fixture
def free_port() -> int:
    """비어 있는 로컬 포트."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def get(server: CallbackServer, query: str, path: str = "/callback") -> httpx.Response:
    return httpx.get(f"{server.address}{path}?{query}", timeout=5)


class TestStatesMatch:
    """state 비교 테스트."""

    def test_equal(self):
        assert states_match("abc", "abc") is True

    def test_different(self):
        assert states_match("abd", "abc") is False

    def test_prefix_is_not_match(self):
        assert states_match("ab", "abc") is False


class TestCallbackOutcomes:
    """콜백 결과 처리 테스트."""

    def test_granted_on_matching_state(self, free_port):
        """state 일치 시 200 + Granted."""
        with CallbackServer(free_port, "abc", timeout=5) as server:
            future = server.start()
            response = get(server, "code=XYZ&state=abc")

            assert response.status_code == 200
            assert future.result(timeout=5) == Granted("XYZ")

    def test_root_path_is_accepted(self, free_port):
        """쿼리 파라미터로 판단 (경로 무관)."""
        with CallbackServer(free_port, "abc", timeout=5) as server:
            future = server.start()
            response = get(server, "code=XYZ&state=abc", path="/")

            assert response.status_code == 200
            assert future.result(timeout=5) == Granted("XYZ")

    def test_mismatched_state_does_not_resolve(self, free_port):
        """state 불일치는 400으로 거절하고 대기를 계속함."""
        with CallbackServer(free_port, "abc", timeout=5) as server:
            future = server.start()

            forged = get(server, "code=FAKE&state=wrong")
            assert forged.status_code == 400
            assert not future.done()

            valid = get(server, "code=XYZ&state=abc")
            assert valid.status_code == 200
            assert future.result(timeout=5) == Granted("XYZ")

    def test_access_denied(self, free_port):
        """error=access_denied → Denied("user declined")."""
        with CallbackServer(free_port, "abc", timeout=5) as server:
            future = server.start()
            response = get(server, "error=access_denied&error_description=nope")

            assert response.status_code == 400
            assert future.result(timeout=5) == Denied("user declined")

    def test_other_error(self, free_port):
        """기타 error → Denied("flow failed")."""
        with CallbackServer(free_port, "abc", timeout=5) as server:
            future = server.start()
            response = get(server, "error=server_error")

            assert response.status_code == 400
            assert future.result(timeout=5) == Denied("flow failed")

    def test_requests_after_resolution_are_not_processed(self, free_port):
        """결과가 나온 뒤에는 서버가 닫혀 있음."""
        with CallbackServer(free_port, "abc", timeout=5) as server:
            future = server.start()
            get(server, "error=access_denied")
            assert future.result(timeout=5) == Denied("user declined")

            with pytest.raises(httpx.ConnectError):
                get(server, "code=FAKE&state=wrong")

            assert future.result() == Denied("user declined")

    def test_favicon_is_ignored(self, free_port):
        """favicon 요청은 무시하고 계속 대기."""
        with CallbackServer(free_port, "abc", timeout=5) as server:
            future = server.start()

            response = httpx.get(f"{server.address}/favicon.ico", timeout=5)
            assert response.status_code == 204
            assert not future.done()

            response = get(server, "foo=bar")
            assert response.status_code == 404
            assert not future.done()

            get(server, "code=XYZ&state=abc")
            assert future.result(timeout=5) == Granted("XYZ")

    def test_granted_repr_hides_code(self):
        """Granted repr에 code 노출 안 함."""
        assert "secret-code" not in repr(Granted("secret-code"))


class TestCallbackLifecycle:
    """타임아웃, 포트 해제, 취소 테스트."""

    def test_timeout_resolves_timed_out(self, free_port):
        """콜백이 없으면 TimedOut."""
        server = CallbackServer(free_port, "abc", timeout=0.3, poll_interval=0.1)
        future = server.start()

        assert future.result(timeout=5) == TimedOut()

    def test_port_released_after_timeout(self, free_port):
        """타임아웃 후 포트가 바로 다시 바인딩 가능."""
        server = CallbackServer(free_port, "abc", timeout=0.3, poll_interval=0.1)
        future = server.start()
        future.result(timeout=5)

        assert can_bind(free_port) is True

    def test_port_released_after_success(self, free_port):
        """성공 후 포트 해제."""
        with CallbackServer(free_port, "abc", timeout=5) as server:
            future = server.start()
            get(server, "code=XYZ&state=abc")
            future.result(timeout=5)

        # 새 리스너가 같은 포트를 다시 바인딩할 수 있음
        again = CallbackServer(free_port, "def", timeout=0.2, poll_interval=0.1)
        assert again.start().result(timeout=5) == TimedOut()

    def test_forged_flood_does_not_exhaust_ceiling(self, free_port):
        """위조 state 요청이 상한보다 많아도 정상 콜백은 Granted."""
        with CallbackServer(
            free_port, "abc", timeout=30, poll_interval=5, max_attempts=3
        ) as server:
            future = server.start()
            for _ in range(10):
                assert get(server, "code=FAKE&state=wrong").status_code == 400
            assert not future.done()

            assert get(server, "code=XYZ&state=abc").status_code == 200
            assert future.result(timeout=5) == Granted("XYZ")

    def test_outcome_kept_when_response_write_fails(self, free_port, monkeypatch):
        """브라우저가 응답 도중 연결을 끊어도 code는 남음."""
        def broken_pipe(handler):
            raise BrokenPipeError()

        monkeypatch.setattr(OAuthCallbackHandler, "_send_success", broken_pipe)
        with CallbackServer(free_port, "abc", timeout=5) as server:
            future = server.start()
            with pytest.raises(httpx.HTTPError):
                get(server, "code=XYZ&state=abc")

            assert future.result(timeout=5) == Granted("XYZ")

    @pytest.mark.asyncio
    async def test_async_exit_does_not_block_event_loop(self, free_port):
        """async with 종료 중에도 다른 코루틴이 실행됨."""
        ticks = []

        async def ticker():
            while True:
                ticks.append(1)
                await asyncio.sleep(0.01)

        task = asyncio.create_task(ticker())
        try:
            async with CallbackServer(
                free_port, "abc", timeout=30, poll_interval=1.0
            ) as server:
                server.start()
                await asyncio.sleep(0.05)
                before = len(ticks)
            assert len(ticks) > before
        finally:
            task.cancel()

        assert can_bind(free_port) is True

    def test_attempt_ceiling_after_mismatch(self, free_port):
        """반복 상한 도달 + state 불일치 이력 → InvalidState."""
        server = CallbackServer(
            free_port, "abc", timeout=10, poll_interval=2, max_attempts=1
        )
        future = server.start()
        get(server, "code=FAKE&state=wrong")

        assert future.result(timeout=5) == InvalidState()

    def test_attempt_ceiling_without_mismatch(self, free_port):
        """불일치 없이 상한 도달 → TimedOut."""
        server = CallbackServer(
            free_port, "abc", timeout=10, poll_interval=0.1, max_attempts=1
        )
        future = server.start()

        assert future.result(timeout=5) == TimedOut()

    def test_cancel_releases_port(self, free_port):
        """호출 측 취소 시 서버 종료 및 포트 해제."""
        server = CallbackServer(free_port, "abc", timeout=30, poll_interval=0.1)
        future = server.start()

        assert future.cancel() is True
        server._thread.join(timeout=5)

        assert not server._thread.is_alive()
        assert can_bind(free_port) is True

    def test_stop_resolves_timed_out(self, free_port):
        """stop() 호출 시 TimedOut으로 종료."""
        server = CallbackServer(free_port, "abc", timeout=30, poll_interval=0.1)
        future = server.start()
        server.stop()

        assert future.result(timeout=1) == TimedOut()
        assert can_bind(free_port) is True

    def test_bind_failure_raises_server_error(self):
        """포트가 사용 중이면 ServerError (재시도 없음)."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            s.listen(1)
            port = s.getsockname()[1]

            server = CallbackServer(port, "abc", timeout=1)
            with pytest.raises(ServerError):
                server.start()

    def test_start_twice_raises(self, free_port):
        """같은 서버를 두 번 시작할 수 없음."""
        with CallbackServer(free_port, "abc", timeout=5, poll_interval=0.1) as server:
            server.start()
            with pytest.raises(ServerError):
                server.start()


class TestEndToEnd:
    """포트 할당 → 서버 시작 → 콜백 수신."""

    def test_allocate_and_grant(self, free_port):
        """8080-8082 사용 중 → 8083, 이후 실제 포트로 Granted."""
        occupied = {8080, 8081, 8082}
        assert find_available_port(
            8080, 100, bindable=lambda p: p not in occupied
        ) == 8083

        with CallbackServer(free_port, "abc", timeout=2) as server:
            future = server.start()
            response = get(server, "code=XYZ&state=abc", path="/")
            assert response.status_code == 200
            assert future.result(timeout=5) == Granted("XYZ")

            with pytest.raises(httpx.ConnectError):
                get(server, "code=FAKE&state=wrong", path="/")
