"""
OpenFlow 규칙 설치 모듈
게이트웨이 주소 계산 및 어플라이언스 터널 주소 <-> 게이트웨이 주소 변환 규칙 설치
"""

import ipaddress
from dataclasses import dataclass
from typing import List, Optional
from rich.console import Console
from .errors import ConfigError, OperationFailed
from .fabric import BRIDGE, OPENFLOW_VERSION
from .logger import get_logger
from .network import NetworkChecker
from .shell import Runner, check_cmd, run_cmd

console = Console()

# 오버레이 SDN 테이블 레이아웃에 종속된 값들.
# SDN 쪽 테이블 구성이 바뀌면 함께 수정해야 한다.
GATEWAY_HOST_SUFFIX = 254
FLOW_COOKIE = "0x99"
OVERLAY_DEVICE = "tun0"
OVERLAY_OFPORT = 2
CLASSIFIER_TABLE = 0
ARP_TABLE = 30
PRIORITY_ARP = 100
PRIORITY_REWRITE = 200
PRIORITY_ARP_RESTRICT = 300
FLOW_RULE_COUNT = 7


@dataclass(frozen=True)
class FlowRule:
    """OpenFlow 규칙"""
    table: int
    priority: int
    match: str
    action: str
    cookie: str = FLOW_COOKIE

    def to_ofctl(self) -> str:
        """ovs-ofctl add-flow 형식 문자열"""
        return (
            f"cookie={self.cookie},table={self.table},priority={self.priority},"
            f"{self.match},actions={self.action}"
        )


def subnet_prefix(value: str) -> str:
    """서브넷 접두사(앞 세 옥텟) 추출

    "10.1.2", "10.1.2.7", "10.1.2.0/23" 모두 "10.1.2"를 반환한다.
    """
    value = value.strip()
    parts = value.split(".")
    if len(parts) == 3:
        candidate = f"{value}.0"
    else:
        candidate = value.split("/", 1)[0]

    try:
        address = ipaddress.IPv4Address(candidate)
    except ipaddress.AddressValueError:
        raise ConfigError(f"Invalid gateway subnet: {value!r}")

    return ".".join(str(address).split(".")[:3])


def compute_gateway_address(prefix: str) -> str:
    """서브넷 접두사 + 고정 호스트 접미사"""
    return f"{subnet_prefix(prefix)}.{GATEWAY_HOST_SUFFIX}"


def build_flow_rules(appliance_tunnel_ip: str, gateway_ip: str, cluster_cidr: str,
                     cookie: str = FLOW_COOKIE) -> List[FlowRule]:
    """설치 순서대로 정렬된 규칙 목록

    ARP 응답 규칙이 ARP 해석을 전제로 하는 트래픽 규칙보다 먼저 설치된다.
    """
    out = f"output:{OVERLAY_OFPORT}"
    return [
        # SNAT: 어플라이언스 터널 주소 -> 게이트웨이 주소
        FlowRule(CLASSIFIER_TABLE, PRIORITY_REWRITE,
                 f"ip,nw_src={appliance_tunnel_ip}",
                 f"mod_nw_src:{gateway_ip},resubmit(,{CLASSIFIER_TABLE})", cookie),
        # DNAT: 게이트웨이 주소 -> 어플라이언스 터널 주소
        FlowRule(CLASSIFIER_TABLE, PRIORITY_REWRITE,
                 f"ip,nw_dst={gateway_ip}",
                 f"mod_nw_dst:{appliance_tunnel_ip},resubmit(,{CLASSIFIER_TABLE})", cookie),
        FlowRule(CLASSIFIER_TABLE, PRIORITY_ARP,
                 f"arp,nw_dst={gateway_ip}", out, cookie),
        FlowRule(CLASSIFIER_TABLE, PRIORITY_ARP_RESTRICT,
                 f"arp,nw_src={gateway_ip},nw_dst={cluster_cidr}",
                 f"goto_table:{ARP_TABLE}", cookie),
        FlowRule(ARP_TABLE, PRIORITY_ARP_RESTRICT,
                 f"arp,nw_dst={gateway_ip}", out, cookie),
        FlowRule(ARP_TABLE, PRIORITY_ARP_RESTRICT,
                 f"ip,nw_dst={gateway_ip}", out, cookie),
        FlowRule(CLASSIFIER_TABLE, PRIORITY_REWRITE,
                 f"ip,nw_dst={appliance_tunnel_ip}", out, cookie),
    ]


class FlowProgrammer:
    """게이트웨이 주소 설정 및 플로우 설치 클래스"""

    def __init__(self, bridge: str = BRIDGE, overlay_device: str = OVERLAY_DEVICE,
                 cookie: str = FLOW_COOKIE, runner: Runner = run_cmd,
                 checker: Optional[NetworkChecker] = None):
        self.bridge = bridge
        self.overlay_device = overlay_device
        self.cookie = cookie
        self.runner = runner
        self.checker = checker or NetworkChecker(runner)
        self.logger = get_logger()

    def detect_subnet(self) -> str:
        """오버레이 게이트웨이 장치 주소에서 서브넷 접두사 추출"""
        ip = self.checker.interface_ipv4(self.overlay_device)
        if not ip:
            raise OperationFailed(
                f"No IPv4 address on {self.overlay_device}; set the gateway subnet explicitly"
            )
        self.logger.debug(f"Detected {self.overlay_device} address {ip}")
        return subnet_prefix(ip)

    def assign_gateway(self, gateway_ip: str):
        """게이트웨이 호스트 주소 추가 (이미 있으면 성공, 라우트는 추가하지 않음)"""
        check_cmd(
            ["ip", "addr", "add", gateway_ip, "dev", self.overlay_device],
            self.runner,
            tolerate=("File exists",)
        )

    def add_flow(self, rule: FlowRule):
        check_cmd(
            ["ovs-ofctl", "-O", OPENFLOW_VERSION, "add-flow", self.bridge, rule.to_ofctl()],
            self.runner
        )
        self.logger.debug(f"Added flow: {rule.to_ofctl()}")

    def program_flows(self, gateway_subnet: Optional[str], appliance_tunnel_address: str,
                      cluster_cidr: str) -> str:
        """게이트웨이 주소 계산 후 규칙 설치

        Args:
            gateway_subnet: 게이트웨이 서브넷 (None이면 오버레이 장치에서 감지)
            appliance_tunnel_address: 어플라이언스 터널 주소
            cluster_cidr: 클러스터 파드 CIDR

        Returns:
            str: 게이트웨이 주소

        Raises:
            OperationFailed: 주소 감지/설정 또는 규칙 설치 실패 (롤백 없음)
        """
        console.print(f"\n[bold cyan]{self.bridge} 플로우 규칙 설치 중...[/bold cyan]")

        prefix = subnet_prefix(gateway_subnet) if gateway_subnet else self.detect_subnet()
        gateway_ip = compute_gateway_address(prefix)
        self.logger.info(f"Gateway address: {gateway_ip}")

        self.assign_gateway(gateway_ip)
        console.print(f"  ✓ 게이트웨이 {gateway_ip} → {self.overlay_device}")

        rules = build_flow_rules(appliance_tunnel_address, gateway_ip, cluster_cidr, self.cookie)
        for index, rule in enumerate(rules, 1):
            self.add_flow(rule)
            console.print(f"  ✓ [{index}/{len(rules)}] table={rule.table} {rule.match}")

        self.logger.info(f"Installed {len(rules)} flows with cookie {self.cookie}")
        return gateway_ip

    def installed_flows(self) -> List[str]:
        """쿠키로 식별되는 설치된 플로우 목록"""
        result = check_cmd(
            ["ovs-ofctl", "-O", OPENFLOW_VERSION, "dump-flows", self.bridge,
             f"cookie={self.cookie}/-1"],
            self.runner
        )
        return [line.strip() for line in result.stdout.splitlines() if "cookie=" in line]
