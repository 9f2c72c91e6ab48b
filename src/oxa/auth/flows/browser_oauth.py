"""Browser-based OAuth 2.0 + PKCE Authentication

로컬 loopback HTTP 서버로 callback을 받는 Authorization Code 플로우.

1. state/PKCE 새로 생성 (시도마다 새 값)
2. 빈 포트 탐색 후 콜백 서버 시작
3. 브라우저로 인증 URL 열기 (실패해도 계속 진행)
4. 콜백 결과 대기
5. code + code_verifier로 토큰 교환
"""

import asyncio
import base64
import hashlib
import logging
import secrets
import webbrowser
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime, timezone
from urllib.parse import urlencode

from rich.console import Console
from rich.panel import Panel

from oxa.auth.exceptions import (
    AuthFailedError,
    AuthTimeoutError,
    UserCancelledError,
)
from oxa.auth.identity import fetch_identity
from oxa.auth.models import AuthResult, TokenCredential
from oxa.auth.retry import RetryPolicy
from oxa.auth.server.callback_server import (
    CallbackServer,
    Denied,
    Granted,
    InvalidState,
    TimedOut,
)
from oxa.auth.server.ports import LOOPBACK_HOST, find_available_port
from oxa.auth.transport import post_form
from oxa.config import AuthConfig

logger = logging.getLogger(__name__)

# 서버 타임아웃 이후 결과를 기다리는 추가 시간 (초)
WAIT_GRACE = 5.0


@dataclass
class PKCEChallenge:
    """PKCE (Proof Key for Code Exchange) 챌린지."""

    code_verifier: str = field(repr=False)
    code_challenge: str
    code_challenge_method: str = "S256"


def derive_code_challenge(code_verifier: str) -> str:
    """code_verifier의 SHA256 해시를 base64url 인코딩 (패딩 제거)"""
    digest = hashlib.sha256(code_verifier.encode()).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()


def generate_pkce_challenge() -> PKCEChallenge:
    """PKCE 챌린지 생성.

    Returns:
        PKCEChallenge: code_verifier와 code_challenge 포함
    """
    # code_verifier: 43-128자의 랜덤 문자열
    code_verifier = secrets.token_urlsafe(64)
    return PKCEChallenge(
        code_verifier=code_verifier,
        code_challenge=derive_code_challenge(code_verifier),
    )


@dataclass
class AuthorizationRequest:
    """인증 시도 1회분의 요청 값.

    csrf_state와 pkce 검증값은 로그/에러 메시지에 남기지 않습니다.
    """

    client_id: str
    scopes: list[str]
    redirect_uri: str
    csrf_state: str = field(repr=False)
    pkce: PKCEChallenge = field(repr=False)

    @classmethod
    def create(cls, config: AuthConfig, port: int) -> "AuthorizationRequest":
        """새 state/PKCE로 요청 생성"""
        return cls(
            client_id=config.client_id,
            scopes=list(config.scopes),
            redirect_uri=f"http://{LOOPBACK_HOST}:{port}/callback",
            csrf_state=secrets.token_urlsafe(32),
            pkce=generate_pkce_challenge(),
        )

    @property
    def pkce_verifier(self) -> str:
        return self.pkce.code_verifier

    @property
    def pkce_challenge(self) -> str:
        return self.pkce.code_challenge


def build_authorization_url(config: AuthConfig, request: AuthorizationRequest) -> str:
    """인증 URL 생성.

    Returns:
        str: 인증 URL
    """
    params = {
        "client_id": request.client_id,
        "redirect_uri": request.redirect_uri,
        "response_type": "code",
        "scope": " ".join(request.scopes),
        "state": request.csrf_state,
        "code_challenge": request.pkce.code_challenge,
        "code_challenge_method": request.pkce.code_challenge_method,
    }
    return f"{config.authorize_url}?{urlencode(params)}"


def parse_token_response(body: dict) -> TokenCredential:
    """토큰 응답 해석.

    Raises:
        AuthFailedError: error 응답 또는 access_token 누락
    """
    if "error" in body:
        error = body["error"]
        description = body.get("error_description") or error
        raise AuthFailedError(f"토큰 교환 실패: {description}", error_code=error)
    if not body.get("access_token"):
        raise AuthFailedError("토큰 응답에 access_token이 없습니다.")
    return TokenCredential(
        access_token=body["access_token"],
        obtained_at=datetime.now(timezone.utc),
    )


class AuthorizationCodeFlow:
    """Browser-based OAuth 2.0 + PKCE 인증.

    Example:
        flow = AuthorizationCodeFlow(AuthConfig.from_env())
        credential = await flow.run()
    """

    def __init__(
        self,
        config: AuthConfig,
        open_browser: bool = True,
        console: Console | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        """초기화.

        Args:
            config: 인증 설정
            open_browser: 브라우저 자동 열기
            console: 안내 출력용 콘솔
            retry_policy: 네트워크 재시도 정책 (None이면 설정값 사용)
        """
        self.config = config
        self.open_browser = open_browser
        self.console = console or Console()
        self.retry_policy = retry_policy or RetryPolicy(
            config.max_retries, config.initial_retry_delay
        )
        self.request: AuthorizationRequest | None = None

    def _launch_browser(self, auth_url: str) -> None:
        self.console.print()
        self.console.print(
            Panel.fit(
                f"[bold cyan]아래 URL을 브라우저에서 열어주세요:[/bold cyan]\n\n"
                f"[link={auth_url}]{auth_url}[/link]",
                title="[AUTH] GitHub Login",
                border_style="cyan",
            )
        )
        self.console.print()
        if not self.open_browser:
            return
        try:
            opened = webbrowser.open(auth_url)
        except webbrowser.Error as e:
            logger.warning("Could not launch browser: %s", e)
            opened = False
        if not opened:
            logger.warning("Browser did not open, waiting for manual login")
            self.console.print(
                "[yellow]브라우저를 열지 못했습니다. 위 URL을 직접 열어주세요.[/yellow]"
            )

    async def _wait_for_callback(self, future: Future):
        try:
            return await asyncio.wait_for(
                asyncio.wrap_future(future),
                timeout=self.config.server_timeout + WAIT_GRACE,
            )
        except asyncio.TimeoutError:
            return TimedOut()

    async def exchange_code(self, code: str) -> TokenCredential:
        """인증 코드를 토큰으로 교환.

        네트워크 오류만 재시도합니다. invalid_grant 등은 바로 실패합니다.

        Args:
            code: 인증 코드

        Returns:
            TokenCredential: 액세스 토큰
        """
        request = self.request
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": request.redirect_uri,
            "client_id": request.client_id,
            "code_verifier": request.pkce_verifier,
        }
        if self.config.client_secret:
            data["client_secret"] = self.config.client_secret

        body = await self.retry_policy.retry(
            lambda: post_form(self.config, self.config.token_url, data)
        )
        return parse_token_response(body)

    async def run(self) -> TokenCredential:
        """인증 수행.

        Returns:
            TokenCredential: 액세스 토큰

        Raises:
            NoAvailablePortsError: 빈 포트 없음
            ServerError: 콜백 서버 바인딩 실패
            UserCancelledError: 사용자가 거부
            AuthFailedError: state 불일치, 토큰 교환 거부
            AuthTimeoutError: 콜백 대기 시간 초과
            NetworkError: 재시도 후에도 네트워크 실패
        """
        port = find_available_port(self.config.port_start, self.config.port_range)
        self.request = AuthorizationRequest.create(self.config, port)

        async with CallbackServer(
            port, self.request.csrf_state, self.config.server_timeout
        ) as server:
            future = server.start()
            self._launch_browser(build_authorization_url(self.config, self.request))
            self.console.print("[dim]브라우저에서 로그인 후 대기 중...[/dim]")
            outcome = await self._wait_for_callback(future)

        if isinstance(outcome, Granted):
            logger.debug("Authorization code received")
            self.console.print("[dim]토큰 교환 중...[/dim]")
            credential = await self.exchange_code(outcome.code)
            self.console.print("[bold green][OK] 인증 성공![/bold green]")
            return credential
        if isinstance(outcome, Denied):
            logger.error("Authorization denied: %s", outcome.reason)
            raise UserCancelledError(outcome.reason)
        if isinstance(outcome, InvalidState):
            logger.error("Authorization failed: state mismatch")
            raise AuthFailedError("state mismatch", error_code="state_mismatch")
        logger.error("Timeout waiting for callback")
        raise AuthTimeoutError("callback timed out")

    async def authenticate(self, fetch_user: bool = True) -> AuthResult:
        """인증 + (선택) 사용자 정보 조회.

        Args:
            fetch_user: 사용자 이름 조회 여부

        Returns:
            AuthResult: 토큰과 사용자 정보
        """
        credential = await self.run()
        identity = None
        if fetch_user:
            identity = await fetch_identity(self.config, credential, self.retry_policy)
        return AuthResult(credential=credential, identity=identity)
