"""
외부 명령 실행 모듈
ip, ovs-vsctl, ovs-ofctl, systemctl 호출 및 idempotent 삭제 지원
"""

import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence
from .errors import OperationFailed
from .logger import get_logger


@dataclass
class CommandResult:
    """명령 실행 결과"""
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


Runner = Callable[..., CommandResult]


def run_cmd(cmd: Sequence[str], timeout: Optional[int] = None) -> CommandResult:
    """명령 실행 (블로킹)

    Args:
        cmd: 명령어와 인자 리스트
        timeout: 타임아웃 (초). None이면 무제한

    Returns:
        CommandResult: 종료 코드, stdout, stderr
    """
    logger = get_logger()
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            list(cmd),
            capture_output=True,
            text=True,
            timeout=timeout
        )
    except FileNotFoundError:
        logger.error(f"Command not found: {cmd[0]}")
        return CommandResult(127, "", f"{cmd[0]}: command not found")
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out: {' '.join(cmd)}")
        return CommandResult(124, "", f"timed out after {timeout}s")

    if result.returncode != 0:
        logger.debug(f"Exit {result.returncode}: {result.stderr.strip()}")
    return CommandResult(result.returncode, result.stdout, result.stderr)


def check_cmd(cmd: Sequence[str], runner: Runner = run_cmd,
              tolerate: Sequence[str] = ()) -> CommandResult:
    """명령 실행 후 실패 시 OperationFailed 발생

    stderr에 tolerate 문자열이 포함되면 성공으로 간주한다.
    (예: 주소 중복 추가 시 "File exists")
    """
    result = runner(cmd)
    if result.ok:
        return result
    if any(marker in result.stderr for marker in tolerate):
        get_logger().debug(f"Tolerated failure: {' '.join(cmd)}")
        return result
    raise OperationFailed(
        f"Command failed ({result.returncode}): {' '.join(cmd)}",
        cmd=cmd,
        returncode=result.returncode,
        stderr=result.stderr
    )


class DeleteResult(Enum):
    """idempotent 삭제 결과"""
    REMOVED = "removed"
    ALREADY_ABSENT = "already_absent"
    FAILED = "failed"

    @property
    def ok(self) -> bool:
        return self is not DeleteResult.FAILED


# 삭제 도중 대상이 이미 사라진 경우의 메시지
ABSENT_MARKERS: List[str] = [
    "Cannot find device",
    "No such device",
    "no bridge named",
    "does not exist",
]


def delete_if_exists(exists_cmd: Sequence[str], delete_cmd: Sequence[str],
                     runner: Runner = run_cmd) -> DeleteResult:
    """존재하면 삭제 (idempotent)

    Args:
        exists_cmd: 존재 여부 확인 명령 (종료 코드 0이면 존재)
        delete_cmd: 삭제 명령
        runner: 명령 실행 함수

    Returns:
        DeleteResult: REMOVED, ALREADY_ABSENT, FAILED
    """
    logger = get_logger()

    if not runner(exists_cmd).ok:
        logger.debug(f"Already absent: {' '.join(delete_cmd)}")
        return DeleteResult.ALREADY_ABSENT

    result = runner(delete_cmd)
    if result.ok:
        logger.debug(f"Removed: {' '.join(delete_cmd)}")
        return DeleteResult.REMOVED

    if any(marker in result.stderr for marker in ABSENT_MARKERS):
        logger.debug(f"Vanished before delete: {' '.join(delete_cmd)}")
        return DeleteResult.ALREADY_ABSENT

    logger.error(f"Delete failed: {' '.join(delete_cmd)}: {result.stderr.strip()}")
    return DeleteResult.FAILED
