"""Identity resolution

토큰으로 사용자 이름을 조회합니다 (GitHub `/user`).
"""

import logging

from oxa.auth.models import Identity, TokenCredential
from oxa.auth.retry import RetryPolicy
from oxa.auth.transport import get_json
from oxa.config import AuthConfig

logger = logging.getLogger(__name__)

USERNAME_FIELDS = ("login", "preferred_username", "username")
UNKNOWN_USERNAME = "unknown"


async def fetch_identity(
    config: AuthConfig,
    credential: TokenCredential,
    retry_policy: RetryPolicy | None = None,
) -> Identity:
    """사용자 정보 조회.

    Args:
        config: 인증 설정
        credential: 액세스 토큰
        retry_policy: 네트워크 재시도 정책 (None이면 설정값 사용)

    Returns:
        Identity: 사용자 이름 (필드가 없으면 "unknown")

    Raises:
        NetworkError: 재시도 후에도 네트워크 실패
        AuthFailedError: 토큰 거부
    """
    policy = retry_policy or RetryPolicy(
        config.max_retries, config.initial_retry_delay
    )
    info = await policy.retry(
        lambda: get_json(config, config.userinfo_url, credential.access_token)
    )
    for name in USERNAME_FIELDS:
        value = info.get(name)
        if value:
            logger.debug("Resolved identity: %s", value)
            return Identity(username=str(value))
    logger.warning("Userinfo response has no username field")
    return Identity(username=UNKNOWN_USERNAME)
