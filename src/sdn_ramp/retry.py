"""
고정 간격 폴링 모듈
"""

import time
from typing import Callable
from .errors import PollTimeout
from .logger import get_logger


def poll_until(predicate: Callable[[], bool], interval: float, max_attempts: int,
               sleep: Callable[[float], None] = time.sleep) -> int:
    """조건이 참이 될 때까지 고정 간격으로 폴링

    매 시도 전에 interval 만큼 대기한다. 취소 채널은 없으며
    max_attempts 소진 시에만 종료된다.

    Args:
        predicate: 준비 여부 확인 함수
        interval: 시도 간 대기 시간 (초)
        max_attempts: 최대 시도 횟수 (1 이상)
        sleep: 대기 함수

    Returns:
        int: 성공한 시도 번호 (1부터)

    Raises:
        PollTimeout: max_attempts 번 모두 실패한 경우
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    logger = get_logger()
    for attempt in range(1, max_attempts + 1):
        sleep(interval)
        if predicate():
            logger.debug(f"Condition met on attempt {attempt}/{max_attempts}")
            return attempt
        logger.debug(f"Attempt {attempt}/{max_attempts}: not ready")

    raise PollTimeout(max_attempts)
