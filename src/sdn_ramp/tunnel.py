"""
IPIP 터널 관리 모듈
삭제 후 재생성 방식으로 idempotent 보장
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from rich.console import Console
from .errors import OperationFailed, TunnelUnreachable
from .logger import get_logger
from .network import NetworkChecker
from .shell import Runner, check_cmd, delete_if_exists, run_cmd

console = Console()

TUNNEL_DEVICE = "tun1"
PROBE_COUNT = 5


class LinkState(Enum):
    DOWN = "down"
    UP = "up"


@dataclass(frozen=True)
class TunnelEndpoint:
    """터널 엔드포인트 (교체만 가능, 수정 불가)"""
    device_name: str
    remote_peer_address: str
    local_tunnel_address: str
    link_state: LinkState = LinkState.DOWN


class TunnelManager:
    """터널 관리 클래스"""

    def __init__(self, device: str = TUNNEL_DEVICE, uplink: Optional[str] = None,
                 probe_count: int = PROBE_COUNT, runner: Runner = run_cmd,
                 checker: Optional[NetworkChecker] = None):
        self.device = device
        self.uplink = uplink
        self.probe_count = probe_count
        self.runner = runner
        self.checker = checker or NetworkChecker(runner)
        self.logger = get_logger()

    def remove_tunnel(self):
        """기존 터널 삭제 (없으면 성공으로 간주)"""
        result = delete_if_exists(
            ["ip", "link", "show", self.device],
            ["ip", "tunnel", "del", self.device],
            self.runner
        )
        if not result.ok:
            raise OperationFailed(f"Could not remove tunnel {self.device}")
        self.logger.info(f"Tunnel {self.device}: {result.value}")

    def recreate_tunnel(self, peer_address: str, peer_tunnel_address: str,
                        local_tunnel_address: str) -> TunnelEndpoint:
        """터널 재생성 및 도달성 검증

        Args:
            peer_address: 어플라이언스 내부 주소 (터널 원격 끝점)
            peer_tunnel_address: 어플라이언스 터널 주소
            local_tunnel_address: 램프 노드 터널 주소

        Returns:
            TunnelEndpoint: 활성화된 터널

        Raises:
            OperationFailed: 삭제/생성/주소/라우트 설정 실패
            TunnelUnreachable: 모든 핑 프로브 실패
        """
        console.print(f"\n[bold cyan]터널 {self.device} 재생성 중...[/bold cyan]")
        self.logger.info(f"Recreating tunnel {self.device} towards {peer_address}")

        self.remove_tunnel()

        uplink = self.uplink or self.checker.primary_uplink()
        check_cmd(
            ["ip", "tunnel", "add", self.device, "mode", "ipip",
             "remote", peer_address, "dev", uplink],
            self.runner
        )
        self.logger.debug(f"Created {self.device} on {uplink}")

        check_cmd(["ip", "addr", "add", local_tunnel_address, "dev", self.device], self.runner)
        check_cmd(["ip", "link", "set", self.device, "up"], self.runner)
        endpoint = TunnelEndpoint(self.device, peer_address, local_tunnel_address, LinkState.UP)

        check_cmd(["ip", "route", "replace", peer_tunnel_address, "dev", self.device], self.runner)
        console.print(f"  ✓ {self.device}: {local_tunnel_address} → {peer_tunnel_address} (via {uplink})")

        reachable, msg = self.checker.check_ping(peer_tunnel_address, count=self.probe_count)
        console.print(f"  {msg}")
        if not reachable:
            self.logger.error(f"Tunnel peer {peer_tunnel_address} unreachable")
            raise TunnelUnreachable(peer_tunnel_address, self.probe_count)

        self.logger.info(f"Tunnel {self.device} up, {peer_tunnel_address} reachable")
        return endpoint

    def describe(self) -> Optional[TunnelEndpoint]:
        """현재 터널 상태 조회 (없으면 None)"""
        result = self.runner(["ip", "-d", "link", "show", self.device])
        if not result.ok:
            return None

        peer = re.search(r"link/ipip \S+ peer (\S+)", result.stdout)
        flags = re.search(r"<([^>]*)>", result.stdout)
        up = bool(flags) and "UP" in flags.group(1).split(",")

        return TunnelEndpoint(
            device_name=self.device,
            remote_peer_address=peer.group(1) if peer else "",
            local_tunnel_address=self.checker.interface_ipv4(self.device) or "",
            link_state=LinkState.UP if up else LinkState.DOWN
        )
