"""Auth Configuration

OXA 인증에 필요한 설정값 (client id, 엔드포인트, 포트 범위, 타임아웃 등).
플로우 코드에 직접 박지 않고 AuthConfig로 주입합니다.
"""

import os
from dataclasses import dataclass, field, fields

# GitHub OAuth 기본값
AUTH_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
DEVICE_AUTH_URL = "https://github.com/login/device/code"
USERINFO_URL = "https://api.github.com/user"
SCOPES = ["repo", "read:org", "workflow"]

DEFAULT_PORT = 8080
PORT_RANGE = 100
SERVER_TIMEOUT_SECS = 300

MAX_RETRIES = 3
INITIAL_RETRY_DELAY = 1.0

SERVICE_NAME = "oxa"
TOKEN_KEY = "github_oauth_token"


@dataclass
class AuthConfig:
    """인증 설정.

    Attributes:
        client_id: OAuth Client ID
        client_secret: Client Secret (GitHub OAuth App은 코드 교환 시 필요)
        authorize_url: Authorization Endpoint
        token_url: Token Endpoint
        device_authorize_url: Device Authorization Endpoint
        userinfo_url: 사용자 정보 조회 URL
        scopes: 요청할 scope 목록 (순서 유지)
        port_start: 콜백 포트 탐색 시작 번호
        port_range: 탐색할 포트 개수
        server_timeout: 콜백 대기 시간 (초)
        max_retries: 네트워크 호출 최대 시도 횟수
        initial_retry_delay: 첫 재시도 대기 시간 (초)
        http_timeout: HTTP 요청별 타임아웃 (초)
        service_name: 자격증명 저장소 서비스 이름
        account_key: 자격증명 저장소 계정 키
        user_agent: API 호출 시 User-Agent
    """

    client_id: str = ""
    client_secret: str | None = None
    authorize_url: str = AUTH_URL
    token_url: str = TOKEN_URL
    device_authorize_url: str = DEVICE_AUTH_URL
    userinfo_url: str = USERINFO_URL
    scopes: list[str] = field(default_factory=lambda: list(SCOPES))
    port_start: int = DEFAULT_PORT
    port_range: int = PORT_RANGE
    server_timeout: float = SERVER_TIMEOUT_SECS
    max_retries: int = MAX_RETRIES
    initial_retry_delay: float = INITIAL_RETRY_DELAY
    http_timeout: float = 10.0
    service_name: str = SERVICE_NAME
    account_key: str = TOKEN_KEY
    user_agent: str = "oxa"

    @property
    def scope_string(self) -> str:
        """공백으로 연결한 scope 문자열"""
        return " ".join(self.scopes)

    @classmethod
    def from_env(cls, prefix: str = "OXA_", **overrides) -> "AuthConfig":
        """환경 변수에서 설정 생성.

        `OXA_CLIENT_ID`, `OXA_PORT_START` 처럼 필드 이름을 대문자로 바꾼
        변수를 읽습니다. `OXA_SCOPES`는 공백으로 구분합니다.

        Args:
            prefix: 환경 변수 접두사
            **overrides: 환경 변수보다 우선하는 값

        Returns:
            AuthConfig: 설정

        Raises:
            ValueError: 숫자 필드 값이 잘못된 경우
        """
        values: dict = {}
        for f in fields(cls):
            name = f"{prefix}{f.name.upper()}"
            raw = os.environ.get(name)
            if raw is None:
                continue
            if f.name == "scopes":
                values[f.name] = raw.split()
            elif f.type in ("int", int):
                values[f.name] = _parse_number(name, raw, int)
            elif f.type in ("float", float):
                values[f.name] = _parse_number(name, raw, float)
            else:
                values[f.name] = raw
        values.update(overrides)
        return cls(**values)


def _parse_number(name: str, raw: str, kind: type):
    try:
        return kind(raw)
    except ValueError as e:
        raise ValueError(f"{name} 값이 올바르지 않습니다: {raw!r}") from e
