"""HTTP helpers for the OAuth endpoints

httpx 호출 결과를 인증 예외로 변환합니다.
- 연결/타임아웃 오류, 5xx, 429 → NetworkError (재시도 대상)
- 그 외 4xx, OAuth error 응답 → AuthFailedError
"""

import logging

import httpx

from oxa.auth.exceptions import AuthFailedError, NetworkError
from oxa.config import AuthConfig

logger = logging.getLogger(__name__)

FORM_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/x-www-form-urlencoded",
}


def _is_transient(status_code: int) -> bool:
    return status_code >= 500 or status_code == 429


async def post_form(config: AuthConfig, url: str, data: dict) -> dict:
    """폼 POST 후 JSON 응답 반환.

    OAuth error 응답(4xx 또는 200 + error 필드)은 호출 측이 해석하도록
    그대로 반환합니다.

    Raises:
        NetworkError: 전송 실패 또는 5xx/429
        AuthFailedError: JSON이 아닌 4xx 응답
    """
    try:
        async with httpx.AsyncClient(timeout=config.http_timeout) as client:
            response = await client.post(url, data=data, headers=FORM_HEADERS)
    except httpx.TransportError as e:
        logger.warning("POST %s failed: %s", url, type(e).__name__)
        raise NetworkError(f"{type(e).__name__} while calling {url}") from e

    if _is_transient(response.status_code):
        raise NetworkError(f"HTTP {response.status_code} from {url}")

    try:
        body = response.json()
    except ValueError as e:
        raise AuthFailedError(f"HTTP {response.status_code} from {url}") from e
    if not isinstance(body, dict):
        raise AuthFailedError(f"unexpected response from {url}")
    return body


async def get_json(config: AuthConfig, url: str, access_token: str) -> dict:
    """Bearer 토큰으로 GET 후 JSON 응답 반환.

    Raises:
        NetworkError: 전송 실패 또는 5xx/429
        AuthFailedError: 401/403 등 거부 응답
    """
    headers = {
        "Accept": "application/json",
        "Authorization": f"Bearer {access_token}",
        "User-Agent": config.user_agent,
    }
    try:
        async with httpx.AsyncClient(timeout=config.http_timeout) as client:
            response = await client.get(url, headers=headers)
    except httpx.TransportError as e:
        logger.warning("GET %s failed: %s", url, type(e).__name__)
        raise NetworkError(f"{type(e).__name__} while calling {url}") from e

    if _is_transient(response.status_code):
        raise NetworkError(f"HTTP {response.status_code} from {url}")
    if response.status_code != 200:
        raise AuthFailedError(
            f"HTTP {response.status_code} from {url}",
            error_code=str(response.status_code),
        )
    try:
        return response.json()
    except ValueError as e:
        raise AuthFailedError(f"invalid JSON from {url}") from e
