"""
가상 스위치(OVS) 초기화 모듈
SDN 노드 서비스 재시작 후 기본 플로우가 나타날 때까지 폴링
"""

import time
from dataclasses import dataclass
from typing import Callable
from rich.console import Console
from .errors import FabricNotReady, OperationFailed, PollTimeout
from .logger import get_logger
from .retry import poll_until
from .shell import Runner, check_cmd, delete_if_exists, run_cmd

console = Console()

BRIDGE = "br0"
LEGACY_BRIDGE = "lbr0"
OPENFLOW_VERSION = "OpenFlow13"
DEFAULT_MAX_RETRIES = 42
POLL_INTERVAL = 1.0


@dataclass
class FabricState:
    """재시작 후 스위치 준비 상태 (실행마다 새로 계산)"""
    bridge_name: str
    baseline_table_observed: bool = False
    restart_attempt: int = 0


class FabricResetter:
    """스위치 포워딩 상태 초기화 클래스"""

    def __init__(self, bridge: str = BRIDGE, legacy_bridge: str = LEGACY_BRIDGE,
                 interval: float = POLL_INTERVAL, runner: Runner = run_cmd,
                 sleep: Callable[[float], None] = time.sleep):
        self.bridge = bridge
        self.legacy_bridge = legacy_bridge
        self.interval = interval
        self.runner = runner
        self.sleep = sleep
        self.logger = get_logger()

    def stop_service(self, service_name: str):
        """서비스 중지 (완료될 때까지 블로킹)"""
        self.logger.info(f"Stopping {service_name}...")
        check_cmd(["systemctl", "stop", service_name], self.runner)

    def start_service(self, service_name: str):
        self.logger.info(f"Starting {service_name}...")
        check_cmd(["systemctl", "start", service_name], self.runner)

    def remove_bridges(self):
        """레거시 리눅스 브리지와 OVS 브리지 삭제"""
        legacy = delete_if_exists(
            ["ip", "link", "show", self.legacy_bridge],
            ["ip", "link", "del", self.legacy_bridge],
            self.runner
        )
        if not legacy.ok:
            raise OperationFailed(f"Could not remove legacy bridge {self.legacy_bridge}")
        self.logger.info(f"Legacy bridge {self.legacy_bridge}: {legacy.value}")

        ovs = delete_if_exists(
            ["ovs-vsctl", "br-exists", self.bridge],
            ["ovs-vsctl", "del-br", self.bridge],
            self.runner
        )
        if not ovs.ok:
            raise OperationFailed(f"Could not remove OVS bridge {self.bridge}")
        self.logger.info(f"OVS bridge {self.bridge}: {ovs.value}")

    def baseline_present(self) -> bool:
        """table=0 기본 플로우 존재 여부

        덤프 실패(브리지 미생성)도 준비 안 됨으로 취급한다.
        """
        result = self.runner(
            ["ovs-ofctl", "-O", OPENFLOW_VERSION, "dump-flows", self.bridge, "table=0"]
        )
        if not result.ok:
            return False
        return any("table=0," in line for line in result.stdout.splitlines())

    def reset_fabric(self, service_name: str, max_retries: int = DEFAULT_MAX_RETRIES) -> FabricState:
        """스위치를 깨끗한 기본 상태로 초기화

        Args:
            service_name: 스위치를 관리하는 서비스 이름
            max_retries: 기본 플로우 폴링 최대 횟수

        Returns:
            FabricState: 기본 플로우가 관찰된 상태

        Raises:
            OperationFailed: 서비스 중지/시작 또는 브리지 삭제 실패
            FabricNotReady: max_retries 내에 기본 플로우 미관찰
        """
        console.print(f"\n[bold cyan]가상 스위치 초기화 중 ({service_name})...[/bold cyan]")
        state = FabricState(self.bridge)

        self.stop_service(service_name)
        self.remove_bridges()
        self.start_service(service_name)
        console.print(f"  ✓ {service_name} 재시작 완료, {self.bridge} 준비 대기 중...")

        try:
            state.restart_attempt = poll_until(
                self.baseline_present, self.interval, max_retries, sleep=self.sleep
            )
        except PollTimeout as e:
            state.restart_attempt = e.attempts
            console.print(f"  [red]✗ {self.bridge} 준비 시간 초과 ({e.attempts}회)[/red]")
            self.logger.error(f"Fabric not ready after {e.attempts} attempts")
            raise FabricNotReady(self.bridge, e.attempts) from e

        state.baseline_table_observed = True
        console.print(f"  ✓ {self.bridge} 준비 완료 ({state.restart_attempt}회 시도)")
        self.logger.info(f"Fabric {self.bridge} ready after {state.restart_attempt} attempt(s)")
        return state
