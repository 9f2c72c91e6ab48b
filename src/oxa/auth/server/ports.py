"""Local port allocation

콜백 서버용 빈 로컬 포트 탐색.
"""

import logging
import socket
from collections.abc import Callable

from oxa.auth.exceptions import NoAvailablePortsError

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"


def can_bind(port: int, host: str = LOOPBACK_HOST) -> bool:
    """포트 바인딩 가능 여부 (바인딩 후 바로 해제)"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
        except OSError:
            return False
    return True


def find_available_port(
    start: int,
    width: int,
    bindable: Callable[[int], bool] = can_bind,
) -> int:
    """사용 가능한 포트 찾기.

    [start, start + width) 범위를 낮은 번호부터 검사하여
    처음으로 바인딩 가능한 포트를 반환합니다. 실패해도 재시도하지 않습니다.

    Args:
        start: 시작 포트
        width: 검사할 포트 개수
        bindable: 바인딩 가능 여부 판정 함수 (테스트용 주입)

    Returns:
        int: 사용 가능한 포트 번호

    Raises:
        NoAvailablePortsError: 범위 내 모든 포트가 사용 중
    """
    end = min(start + width, 65536)
    for port in range(start, end):
        if bindable(port):
            logger.debug("Found free port %d", port)
            return port
    logger.error("No free port in %d-%d", start, end - 1)
    raise NoAvailablePortsError(start, width)
