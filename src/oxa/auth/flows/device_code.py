"""Device Code OAuth Flow (RFC 8628)

localhost 콜백 없이 인증을 완료하는 Device Authorization Grant 구현.
브라우저를 띄울 수 없는 headless/CLI 환경에서 사용.

플로우:
1. 앱이 device_code, user_code 요청
2. 사용자에게 verification_uri + user_code 표시
3. 사용자가 브라우저에서 URL 접속 → 코드 입력 → 로그인
4. 앱이 토큰 폴링 (authorization_pending은 계속, slow_down은 간격 2배)
5. 인증 완료 시 access_token 수신
"""

import asyncio
import logging
import time
import webbrowser
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from rich.console import Console
from rich.panel import Panel

from oxa.auth.exceptions import AuthFailedError, AuthTimeoutError
from oxa.auth.flows.browser_oauth import parse_token_response
from oxa.auth.identity import fetch_identity
from oxa.auth.models import AuthResult, TokenCredential
from oxa.auth.retry import RetryPolicy
from oxa.auth.transport import post_form
from oxa.config import AuthConfig

logger = logging.getLogger(__name__)

DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"


@dataclass
class DeviceAuthorization:
    """Device Code 응답.

    Attributes:
        device_code: 토큰 교환에 사용되는 device code (비밀)
        user_code: 사용자가 입력해야 하는 코드
        verification_uri: 사용자가 접속해야 하는 URL
        expires_in: device_code 만료 시간 (초)
        poll_interval: 폴링 간격 (초)
        verification_uri_complete: user_code가 포함된 완전한 URL (선택)
    """

    device_code: str = field(repr=False)
    user_code: str
    verification_uri: str
    expires_in: float
    poll_interval: float
    verification_uri_complete: str | None = None

    @property
    def display_uri(self) -> str:
        return self.verification_uri_complete or self.verification_uri


class DeviceCodeFlow:
    """Device Code OAuth Flow 구현.

    Example:
        flow = DeviceCodeFlow(AuthConfig.from_env())
        credential = await flow.run()
    """

    # 폴링 에러 코드 (RFC 8628)
    ERROR_AUTHORIZATION_PENDING = "authorization_pending"
    ERROR_SLOW_DOWN = "slow_down"
    ERROR_EXPIRED_TOKEN = "expired_token"
    ERROR_ACCESS_DENIED = "access_denied"

    def __init__(
        self,
        config: AuthConfig,
        open_browser: bool = False,
        console: Console | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], float] | None = None,
    ):
        """초기화.

        Args:
            config: 인증 설정
            open_browser: verification URL을 브라우저로 열기
            console: 안내 출력용 콘솔
            retry_policy: 네트워크 재시도 정책 (None이면 설정값 사용)
            sleep: 폴링 대기 함수 (테스트용 주입)
            clock: 단조 시계 (테스트용 주입)
        """
        self.config = config
        self.open_browser = open_browser
        self.console = console or Console()
        self.retry_policy = retry_policy or RetryPolicy(
            config.max_retries, config.initial_retry_delay
        )
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic

    async def request_device_code(self) -> DeviceAuthorization:
        """Device Code 요청.

        Returns:
            DeviceAuthorization: device_code, user_code, verification_uri 등

        Raises:
            AuthFailedError: 요청 거부
            NetworkError: 재시도 후에도 네트워크 실패
        """
        body = await self.retry_policy.retry(
            lambda: post_form(
                self.config,
                self.config.device_authorize_url,
                {"client_id": self.config.client_id, "scope": self.config.scope_string},
            )
        )
        if "error" in body or "device_code" not in body:
            error = body.get("error")
            raise AuthFailedError(
                f"device code 요청 실패: {body.get('error_description') or error}",
                error_code=error,
            )
        missing = [k for k in ("user_code", "verification_uri") if k not in body]
        if missing:
            raise AuthFailedError(
                f"device code 응답에 필드 누락: {', '.join(missing)}",
                error_code="invalid_response",
            )
        return DeviceAuthorization(
            device_code=body["device_code"],
            user_code=body["user_code"],
            verification_uri=body["verification_uri"],
            verification_uri_complete=body.get("verification_uri_complete"),
            expires_in=body.get("expires_in", 900),  # 기본 15분
            poll_interval=body.get("interval", 5),  # 기본 5초
        )

    async def poll_for_token(
        self,
        authorization: DeviceAuthorization,
        requested_at: float,
    ) -> TokenCredential:
        """토큰 폴링.

        Args:
            authorization: request_device_code 결과
            requested_at: device code를 요청한 시각 (clock 기준)

        Returns:
            TokenCredential: 액세스 토큰

        Raises:
            AuthTimeoutError: expires_in 경과 또는 expired_token
            AuthFailedError: access_denied 또는 기타 에러
        """
        deadline = requested_at + authorization.expires_in
        interval = authorization.poll_interval
        data = {
            "client_id": self.config.client_id,
            "device_code": authorization.device_code,
            "grant_type": DEVICE_GRANT_TYPE,
        }

        while True:
            # 다음 폴링이 만료 이후라면 중단
            if self._clock() + interval >= deadline:
                logger.error("Device code expired before approval")
                raise AuthTimeoutError("device code expired")
            await self._sleep(interval)

            body = await self.retry_policy.retry(
                lambda: post_form(self.config, self.config.token_url, data),
                give_up=lambda delay: self._clock() + delay >= deadline,
            )
            error = body.get("error")
            if error is None:
                return parse_token_response(body)

            if error == self.ERROR_AUTHORIZATION_PENDING:
                # 아직 사용자가 인증하지 않음 - 계속 폴링
                continue
            if error == self.ERROR_SLOW_DOWN:
                interval *= 2
                logger.debug("Provider asked to slow down, interval now %ss", interval)
                continue
            if error == self.ERROR_EXPIRED_TOKEN:
                raise AuthTimeoutError("device code expired")
            if error == self.ERROR_ACCESS_DENIED:
                raise AuthFailedError("Access denied", error_code=error)
            description = body.get("error_description") or error
            raise AuthFailedError(f"토큰 요청 실패: {description}", error_code=error)

    def display_instructions(self, authorization: DeviceAuthorization) -> None:
        """사용자 안내 메시지 출력."""
        url = authorization.display_uri
        expires_min = int(authorization.expires_in // 60)

        self.console.print()
        self.console.print(
            Panel.fit(
                f"[bold cyan]GitHub Device Code 인증[/bold cyan]\n\n"
                f"다음 URL을 브라우저에서 열고 코드를 입력하세요:\n\n"
                f"[bold]URL:[/bold] [link={url}]{url}[/link]\n"
                f"[bold]코드:[/bold] [bold yellow]{authorization.user_code}[/bold yellow]\n\n"
                f"[dim]만료: {expires_min}분[/dim]",
                title="[AUTH] Device Code Login",
                border_style="cyan",
            )
        )
        self.console.print()

    async def run(self) -> TokenCredential:
        """전체 인증 플로우 실행.

        Returns:
            TokenCredential: 액세스 토큰
        """
        requested_at = self._clock()
        authorization = await self.request_device_code()
        self.display_instructions(authorization)

        if self.open_browser:
            try:
                webbrowser.open(authorization.display_uri)
            except webbrowser.Error as e:
                logger.warning("Could not launch browser: %s", e)

        self.console.print("[dim]인증 대기 중...[/dim]")
        credential = await self.poll_for_token(authorization, requested_at)
        self.console.print("[bold green][OK] 인증 성공![/bold green]")
        return credential

    async def authenticate(self, fetch_user: bool = True) -> AuthResult:
        """인증 + (선택) 사용자 정보 조회."""
        credential = await self.run()
        identity = None
        if fetch_user:
            identity = await fetch_identity(self.config, credential, self.retry_policy)
        return AuthResult(credential=credential, identity=identity)
