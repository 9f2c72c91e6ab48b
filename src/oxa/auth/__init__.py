"""OXA Auth Module

GitHub OAuth2 인증 서브시스템.
로컬 loopback 콜백(Authorization Code + PKCE) 또는 Device Code 플로우로
토큰을 받고 OS 자격증명 저장소에 보관합니다.

Example:
    from oxa.auth import AuthSession
    from oxa.config import AuthConfig

    session = AuthSession(AuthConfig.from_env())
    await session.login("browser")
"""

from oxa.auth.exceptions import (
    AuthError,
    AuthErrorKind,
    AuthFailedError,
    AuthTimeoutError,
    NetworkError,
    NoAvailablePortsError,
    ServerError,
    StorageError,
    UserCancelledError,
)
from oxa.auth.models import (
    AuthFailure,
    Authenticated,
    Authenticating,
    AuthResult,
    AuthState,
    Identity,
    TokenCredential,
    Unauthenticated,
)
from oxa.auth.retry import RetryPolicy
from oxa.auth.session import AuthSession
from oxa.auth.storage.token_store import TokenStore

__all__ = [
    # Core
    "AuthSession",
    "TokenStore",
    "RetryPolicy",
    # Models
    "TokenCredential",
    "Identity",
    "AuthResult",
    "AuthState",
    "Unauthenticated",
    "Authenticating",
    "Authenticated",
    "AuthFailure",
    # Exceptions
    "AuthError",
    "AuthErrorKind",
    "AuthFailedError",
    "UserCancelledError",
    "AuthTimeoutError",
    "NoAvailablePortsError",
    "ServerError",
    "NetworkError",
    "StorageError",
]
