"""Custom authentication exceptions.

인증 관련 예외 클래스 정의.
포트 탐색, 콜백 서버, 토큰 교환, 자격증명 저장소의 실패를
작은 종류(AuthErrorKind) 집합으로 통일합니다.

예외 메시지에는 access_token, code_verifier, state, device_code 같은
비밀 값을 절대 넣지 않습니다.
"""

from enum import Enum


class AuthErrorKind(str, Enum):
    """인증 에러 종류."""

    AUTH_FAILED = "auth_failed"
    USER_CANCELLED = "user_cancelled"
    AUTH_TIMEOUT = "auth_timeout"
    NO_AVAILABLE_PORTS = "no_available_ports"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    STORAGE_ERROR = "storage_error"


class AuthError(Exception):
    """기본 인증 예외.

    모든 인증 관련 예외의 베이스 클래스.

    Attributes:
        kind: 에러 종류
        retryable: RetryPolicy가 재시도할 수 있는 에러인지 여부
    """

    kind: AuthErrorKind = AuthErrorKind.AUTH_FAILED
    retryable: bool = False

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message or self.user_message())

    def user_message(self) -> str:
        """사용자에게 보여줄 짧은 메시지"""
        return f"오류가 발생했습니다: {self.message}"


class AuthFailedError(AuthError):
    """인증 실패 (state 불일치, invalid_grant, 교환 후 거부 등).

    Attributes:
        error_code: OAuth 에러 코드 (예: 'invalid_grant', 'access_denied')
    """

    kind = AuthErrorKind.AUTH_FAILED

    def __init__(self, message: str = "", error_code: str | None = None):
        self.error_code = error_code
        super().__init__(message)

    def user_message(self) -> str:
        return f"인증에 실패했습니다: {self.message or self.error_code}"


class UserCancelledError(AuthError):
    """사용자가 브라우저 동의 화면에서 거부함."""

    kind = AuthErrorKind.USER_CANCELLED

    def user_message(self) -> str:
        return "인증이 취소되었습니다."


class AuthTimeoutError(AuthError):
    """제한 시간 안에 콜백 또는 device 승인이 없음."""

    kind = AuthErrorKind.AUTH_TIMEOUT

    def user_message(self) -> str:
        return "인증 시간이 초과되었습니다. 다시 시도하세요."


class NoAvailablePortsError(AuthError):
    """콜백 서버에 쓸 수 있는 로컬 포트가 없음.

    Attributes:
        start: 탐색 시작 포트
        width: 탐색한 포트 개수
    """

    kind = AuthErrorKind.NO_AVAILABLE_PORTS

    def __init__(self, start: int, width: int):
        self.start = start
        self.width = width
        super().__init__(f"ports {start}-{start + width - 1} are all in use")

    def user_message(self) -> str:
        return "로컬 서버에 사용할 포트가 없습니다. 다시 시도하세요."


class ServerError(AuthError):
    """로컬 콜백 서버 바인딩/IO 실패."""

    kind = AuthErrorKind.SERVER_ERROR

    def user_message(self) -> str:
        return f"로컬 서버 오류: {self.message}"


class NetworkError(AuthError):
    """일시적인 네트워크 실패 (타임아웃, 연결 오류, 5xx).

    RetryPolicy가 재시도하는 유일한 에러.
    """

    kind = AuthErrorKind.NETWORK_ERROR
    retryable = True

    def user_message(self) -> str:
        return "네트워크 오류가 발생했습니다. 인터넷 연결을 확인하세요."


class StorageError(AuthError):
    """OS 자격증명 저장소 접근 실패."""

    kind = AuthErrorKind.STORAGE_ERROR

    def user_message(self) -> str:
        return "보안 저장소에 접근하지 못했습니다. 시스템 키링을 확인하세요."
