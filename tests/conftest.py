"""Shared test fixtures."""

import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from oxa.config import AuthConfig


class MemoryKeyring(KeyringBackend):
    """In-memory keyring backend for tests."""

    priority = 1

    def __init__(self):
        super().__init__()
        self.passwords: dict[tuple[str, str], str] = {}

    def get_password(self, service, username):
        return self.passwords.get((service, username))

    def set_password(self, service, username, password):
        self.passwords[(service, username)] = password

    def delete_password(self, service, username):
        try:
            del self.passwords[(service, username)]
        except KeyError:
            raise PasswordDeleteError("Password not found") from None


@pytest.fixture
def memory_keyring():
    """Install an in-memory keyring for the duration of a test."""
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


@pytest.fixture
def auth_config() -> AuthConfig:
    """테스트용 인증 설정 (재시도 대기 없음)."""
    return AuthConfig(
        client_id="test-client",
        authorize_url="https://auth.example.com/authorize",
        token_url="https://auth.example.com/token",
        device_authorize_url="https://auth.example.com/device/code",
        userinfo_url="https://api.example.com/user",
        scopes=["repo", "read:org"],
        server_timeout=2,
        max_retries=3,
        initial_retry_delay=0,
    )
