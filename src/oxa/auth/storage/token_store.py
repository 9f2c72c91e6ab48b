"""Token Store

OS 자격증명 저장소(keyring)를 사용한 토큰 관리.

- Windows: Credential Manager
- macOS: Keychain
- Linux: Secret Service (libsecret)

(service, account) 쌍 하나에 `{"access_token": ...}` JSON만 저장합니다.
"""

import json
import logging

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from oxa.auth.exceptions import StorageError
from oxa.auth.models import TokenCredential
from oxa.config import SERVICE_NAME, TOKEN_KEY

logger = logging.getLogger(__name__)


class TokenStore:
    """토큰 저장소

    Example:
        store = TokenStore()
        store.store(credential)
        credential = store.load()
        store.clear()
    """

    def __init__(self, service_name: str = SERVICE_NAME, account_key: str = TOKEN_KEY):
        self.service_name = service_name
        self.account_key = account_key

    def store(self, credential: TokenCredential) -> None:
        """토큰 저장

        Raises:
            StorageError: 저장소 접근 실패
        """
        payload = json.dumps(credential.to_dict())
        try:
            keyring.set_password(self.service_name, self.account_key, payload)
        except KeyringError as e:
            logger.error("Failed to store token: %s", type(e).__name__)
            raise StorageError(f"cannot write credential: {type(e).__name__}") from e
        logger.debug("Stored token for %s/%s", self.service_name, self.account_key)

    def load(self) -> TokenCredential | None:
        """토큰 로드

        Returns:
            TokenCredential 또는 None (저장된 토큰 없음)

        Raises:
            StorageError: 저장소 접근 실패 또는 손상된 데이터
        """
        try:
            payload = keyring.get_password(self.service_name, self.account_key)
        except KeyringError as e:
            logger.error("Failed to load token: %s", type(e).__name__)
            raise StorageError(f"cannot read credential: {type(e).__name__}") from e
        if payload is None:
            return None
        try:
            return TokenCredential.from_dict(json.loads(payload))
        except (ValueError, KeyError, TypeError) as e:
            raise StorageError("stored credential is corrupted") from e

    def clear(self) -> None:
        """토큰 삭제 (없으면 아무것도 하지 않음)

        Raises:
            StorageError: 저장소 접근 실패
        """
        try:
            keyring.delete_password(self.service_name, self.account_key)
        except PasswordDeleteError:
            logger.debug("No stored token to clear")
        except KeyringError as e:
            logger.error("Failed to clear token: %s", type(e).__name__)
            raise StorageError(f"cannot delete credential: {type(e).__name__}") from e

    def has_token(self) -> bool:
        """저장된 토큰 존재 여부"""
        return self.load() is not None
