"""Auth data models

토큰, 사용자 정보, 인증 상태 데이터 클래스.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class TokenCredential:
    """액세스 토큰.

    refresh token은 다루지 않습니다 (장기 토큰만 발급됨).
    저장소에서 로드한 토큰은 obtained_at이 None입니다.
    """

    access_token: str = field(repr=False)
    obtained_at: datetime | None = None

    def to_dict(self) -> dict:
        """딕셔너리로 변환 (저장용). access_token 외 필드는 저장하지 않음."""
        return {"access_token": self.access_token}

    @classmethod
    def from_dict(cls, data: dict) -> "TokenCredential":
        """딕셔너리에서 생성"""
        return cls(access_token=data["access_token"])


@dataclass
class Identity:
    """토큰 소유자 정보 (저장하지 않음)"""

    username: str


@dataclass
class AuthResult:
    """플로우 결과: 토큰 + (선택) 사용자 정보"""

    credential: TokenCredential
    identity: Identity | None = None


@dataclass(frozen=True)
class Unauthenticated:
    pass


@dataclass(frozen=True)
class Authenticating:
    pass


@dataclass(frozen=True)
class Authenticated:
    username: str


@dataclass(frozen=True)
class AuthFailure:
    message: str


# UI가 읽는 인증 상태
AuthState = Unauthenticated | Authenticating | Authenticated | AuthFailure
