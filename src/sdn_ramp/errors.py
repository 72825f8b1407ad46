"""램프 에이전트 예외 클래스"""

from typing import Optional, Sequence


class RampError(Exception):
    """램프 에이전트 기본 예외"""

    pass


class UsageError(RampError):
    """필수 입력 누락"""

    pass


class ConfigError(UsageError):
    """잘못된 설정 값"""

    pass


class TunnelUnreachable(RampError):
    """터널은 생성되었지만 피어가 응답하지 않음"""

    def __init__(self, peer: str, probes: int):
        self.peer = peer
        self.probes = probes
        super().__init__(f"Tunnel peer {peer} did not answer any of {probes} probes")


class FabricNotReady(RampError):
    """재시작 후 스위치 기본 플로우가 나타나지 않음"""

    def __init__(self, bridge: str, attempts: int):
        self.bridge = bridge
        self.attempts = attempts
        super().__init__(
            f"Baseline table=0 flow not observed on {bridge} after {attempts} attempts"
        )


class OperationFailed(RampError):
    """외부 명령 실패"""

    def __init__(self, message: str, cmd: Optional[Sequence[str]] = None,
                 returncode: Optional[int] = None, stderr: str = ""):
        self.cmd = list(cmd) if cmd else []
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(f"{message}{detail}")


class PollTimeout(RampError):
    """폴링 시도 횟수 초과"""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Condition not met after {attempts} attempts")
