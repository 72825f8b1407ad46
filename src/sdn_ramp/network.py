"""
호스트 네트워크 확인 모듈
핑 도달성 체크, 기본 업링크 및 인터페이스 주소 조회
"""

from typing import Optional, Tuple
import netifaces
from .errors import OperationFailed
from .logger import get_logger
from .shell import Runner, run_cmd


class NetworkChecker:
    """네트워크 상태 확인 클래스"""

    def __init__(self, runner: Runner = run_cmd):
        self.runner = runner
        self.logger = get_logger()

    def check_ping(self, host: str, count: int = 5, timeout: int = 2) -> Tuple[bool, str]:
        """호스트 핑 테스트

        ping은 응답이 하나라도 있으면 0으로 종료한다.
        """
        self.logger.debug(f"Pinging {host} ({count} probes)...")
        cmd = ["ping", "-c", str(count), "-W", str(timeout), host]
        result = self.runner(cmd)

        if result.ok:
            self.logger.debug(f"✓ {host} is reachable")
            return True, f"✓ {host} 응답 성공"

        self.logger.warning(f"✗ {host} is unreachable")
        return False, f"✗ {host} 응답 실패"

    def primary_uplink(self) -> str:
        """기본 라우트가 향하는 인터페이스 이름"""
        default = netifaces.gateways().get("default", {})
        entry = default.get(netifaces.AF_INET)
        if not entry:
            raise OperationFailed("No IPv4 default route; set uplink_device explicitly")

        interface = entry[1]
        self.logger.debug(f"Primary uplink: {interface}")
        return interface

    def interface_ipv4(self, interface: str) -> Optional[str]:
        """인터페이스의 첫 번째 IPv4 주소"""
        try:
            addrs = netifaces.ifaddresses(interface)
        except ValueError:
            self.logger.debug(f"Interface {interface} not found")
            return None

        for addr_info in addrs.get(netifaces.AF_INET, []):
            ip = addr_info.get("addr")
            if ip:
                self.logger.debug(f"Interface {interface} IP: {ip}")
                return ip

        return None
