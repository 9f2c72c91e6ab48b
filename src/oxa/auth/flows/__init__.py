"""OAuth Flows

GitHub 인증 플로우 구현.
Authorization Code + PKCE (로컬 콜백)가 기본이고,
Device Code Flow는 브라우저/localhost 콜백을 쓸 수 없는 환경에서 사용.
"""

from oxa.auth.flows.browser_oauth import (
    AuthorizationCodeFlow,
    AuthorizationRequest,
    PKCEChallenge,
    build_authorization_url,
    generate_pkce_challenge,
)
from oxa.auth.flows.device_code import DeviceAuthorization, DeviceCodeFlow

__all__ = [
    # Authorization Code
    "AuthorizationCodeFlow",
    "AuthorizationRequest",
    "PKCEChallenge",
    "build_authorization_url",
    "generate_pkce_challenge",
    # Device Code Flow
    "DeviceCodeFlow",
    "DeviceAuthorization",
]
