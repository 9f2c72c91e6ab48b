"""Retry with exponential backoff

네트워크 호출용 재시도 정책.
retryable 에러(NetworkError)만 재시도하고, state 불일치나 invalid_grant 같은
의미적 거부는 바로 올려보냅니다.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from oxa.auth.exceptions import AuthError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable(error: BaseException) -> bool:
    """재시도 가능한 에러인지 확인"""
    return isinstance(error, AuthError) and error.retryable


class RetryPolicy:
    """지수 백오프 재시도.

    Example:
        policy = RetryPolicy(max_attempts=3, initial_delay=1.0)
        token = await policy.retry(lambda: exchange(code))
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        """초기화.

        Args:
            max_attempts: 최대 시도 횟수 (첫 시도 포함)
            initial_delay: 첫 재시도 전 대기 시간 (초), 이후 2배씩 증가
            sleep: 대기 함수 (테스트용 주입)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self._sleep = sleep or asyncio.sleep

    async def retry(
        self,
        operation: Callable[[], Awaitable[T]],
        give_up: Callable[[float], bool] | None = None,
    ) -> T:
        """operation 실행, retryable 에러면 백오프 후 재시도.

        Args:
            operation: 매 시도마다 새 awaitable을 만드는 함수
            give_up: 다음 대기 시간을 받아 True를 돌려주면 재시도 중단 (마감 시각 등)

        Returns:
            operation 결과

        Raises:
            마지막 시도의 에러 (그대로)
        """
        delay = self.initial_delay
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except AuthError as e:
                if not is_retryable(e) or attempt >= self.max_attempts:
                    raise
                if give_up is not None and give_up(delay):
                    logger.warning(
                        "Giving up retry after attempt %d (%s)", attempt, e.kind.value
                    )
                    raise
                logger.warning(
                    "Attempt %d/%d failed (%s), retrying in %.1fs",
                    attempt,
                    self.max_attempts,
                    e.kind.value,
                    delay,
                )
                await self._sleep(delay)
                delay *= 2
        raise AssertionError("unreachable")
