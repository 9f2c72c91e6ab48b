"""Auth Session

로그인/로그아웃/복원을 조율하고 UI가 읽는 AuthState를 관리합니다.
토큰 저장소 접근은 이 클래스에서 직렬화됩니다 (한 번에 하나의 전환).
"""

import asyncio
import logging

from rich.console import Console

from oxa.auth.exceptions import AuthError, AuthFailedError
from oxa.auth.flows.browser_oauth import AuthorizationCodeFlow
from oxa.auth.flows.device_code import DeviceCodeFlow
from oxa.auth.identity import UNKNOWN_USERNAME, fetch_identity
from oxa.auth.models import (
    AuthFailure,
    Authenticated,
    Authenticating,
    AuthState,
    TokenCredential,
    Unauthenticated,
)
from oxa.auth.storage.token_store import TokenStore
from oxa.config import AuthConfig

logger = logging.getLogger(__name__)

LOGIN_METHODS = ("browser", "device")


class AuthSession:
    """인증 세션.

    Example:
        session = AuthSession(AuthConfig.from_env())
        await session.restore()
        if isinstance(session.state, Unauthenticated):
            await session.login("browser")
    """

    def __init__(
        self,
        config: AuthConfig,
        store: TokenStore | None = None,
        console: Console | None = None,
    ):
        self.config = config
        self.store = store or TokenStore(config.service_name, config.account_key)
        self.console = console or Console()
        self.state: AuthState = Unauthenticated()
        self._credential: TokenCredential | None = None
        self._lock = asyncio.Lock()

    @property
    def token(self) -> str | None:
        """API 클라이언트용 액세스 토큰"""
        return self._credential.access_token if self._credential else None

    def _make_flow(self, method: str):
        if method == "browser":
            return AuthorizationCodeFlow(self.config, console=self.console)
        if method == "device":
            return DeviceCodeFlow(self.config, console=self.console)
        raise ValueError(f"unknown login method: {method!r} (expected {LOGIN_METHODS})")

    async def restore(self) -> AuthState:
        """저장된 토큰으로 상태 복원.

        토큰이 거부되면 Unauthenticated로 돌아갑니다 (토큰은 지우지 않음).
        저장소 오류는 "미인증"으로 취급하지 않고 그대로 올립니다.
        """
        async with self._lock:
            credential = self.store.load()
            if credential is None:
                self.state = Unauthenticated()
                return self.state
            try:
                identity = await fetch_identity(self.config, credential)
            except AuthFailedError:
                logger.warning("Stored token was rejected")
                self._credential = None
                self.state = Unauthenticated()
                return self.state
            except AuthError as e:
                self._credential = credential
                self.state = AuthFailure(e.user_message())
                raise
            self._credential = credential
            self.state = Authenticated(identity.username)
            return self.state

    async def login(self, method: str = "browser") -> AuthState:
        """로그인 수행 후 토큰 저장.

        토큰은 사용자 정보 조회 전에 저장됩니다. 조회에 실패해도 토큰은 유지되고
        사용자 이름은 "unknown"이 됩니다.

        Args:
            method: "browser" (Authorization Code + PKCE) 또는 "device"

        Raises:
            AuthError: 인증 실패 (state는 AuthFailure로 설정됨)
        """
        flow = self._make_flow(method)
        async with self._lock:
            self.state = Authenticating()
            try:
                credential = await flow.run()
                self.store.store(credential)
            except AuthError as e:
                logger.error("Login failed: %s", e.kind.value)
                self.state = AuthFailure(e.user_message())
                raise
            except asyncio.CancelledError:
                logger.info("Login cancelled")
                self.state = Unauthenticated()
                raise
            except Exception as e:
                logger.exception("Login failed unexpectedly")
                self.state = AuthFailure(AuthFailedError(type(e).__name__).user_message())
                raise
            self._credential = credential
            self.state = Authenticated(await self._resolve_username(credential))
            return self.state

    async def _resolve_username(self, credential: TokenCredential) -> str:
        try:
            identity = await fetch_identity(self.config, credential)
        except AuthError as e:
            logger.warning("Could not resolve username: %s", e.kind.value)
            return UNKNOWN_USERNAME
        except BaseException:
            # 토큰은 이미 저장됨 (취소 등)
            self.state = Authenticated(UNKNOWN_USERNAME)
            raise
        return identity.username

    async def logout(self) -> AuthState:
        """저장된 토큰 삭제 (이미 없어도 성공)."""
        async with self._lock:
            self.store.clear()
            self._credential = None
            self.state = Unauthenticated()
            return self.state
