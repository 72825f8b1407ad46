"""
테스트 공용 픽스처
명령 실행을 가짜 호스트로 대체
"""

from typing import Dict, List, Optional, Set, Tuple
import netifaces
import pytest
from sdn_ramp import network
from sdn_ramp.logger import init_logger
from sdn_ramp.shell import CommandResult


@pytest.fixture(autouse=True)
def temp_logger(tmp_path):
    """로그를 임시 디렉토리로"""
    return init_logger(str(tmp_path / "fixture-logs"), "DEBUG", False)


BASELINE_FLOW = (" cookie=0x0, duration=3.1s, table=0, n_packets=0, n_bytes=0, "
                 "priority=250,ip,in_port=2,nw_dst=224.0.0.0/4 actions=drop")


class FakeHost:
    """ip / ovs-vsctl / ovs-ofctl / systemctl / ping 동작을 흉내내는 가짜 호스트"""

    def __init__(self):
        self.links: Dict[str, bool] = {"eth0": True, "tun0": True, "lbr0": True}
        self.tunnels: Dict[str, Tuple[str, str]] = {}
        self.addresses: Dict[str, List[str]] = {"eth0": ["172.16.1.5"], "tun0": ["10.1.2.1"]}
        self.routes: Set[Tuple[str, str]] = set()
        self.bridges: Set[str] = {"br0"}
        self.flows: List[Tuple[Tuple[int, int, str], str]] = []
        self.service_running = True
        self.peer_reachable = True
        self.baseline_delay: Optional[int] = 2
        self.polls_since_start = 0
        self.commands: List[List[str]] = []
        self.fail_commands: Dict[str, str] = {}

    # 상태 스냅샷 (idempotent 비교용)
    def snapshot(self):
        return {
            "links": dict(self.links),
            "tunnels": dict(self.tunnels),
            "addresses": {k: sorted(v) for k, v in self.addresses.items()},
            "routes": sorted(self.routes),
            "bridges": sorted(self.bridges),
            "flows": [rule for _, rule in self.flows],
        }

    def reboot(self):
        """재부팅 흉내: 터널 장치와 관련 상태만 사라짐"""
        self.links.pop("tun1", None)
        self.tunnels.pop("tun1", None)
        self.addresses.pop("tun1", None)
        self.routes = {r for r in self.routes if r[1] != "tun1"}

    def commands_starting(self, *prefix: str) -> List[List[str]]:
        return [c for c in self.commands if c[:len(prefix)] == list(prefix)]

    # netifaces 대체
    def ifaddresses(self, interface: str):
        if interface not in self.links:
            raise ValueError("You must specify a valid interface name.")
        return {netifaces.AF_INET: [{"addr": a} for a in self.addresses.get(interface, [])]}

    def gateways(self):
        return {"default": {netifaces.AF_INET: ("172.16.1.1", "eth0")}}

    def __call__(self, cmd, timeout=None) -> CommandResult:
        cmd = list(cmd)
        self.commands.append(cmd)
        joined = " ".join(cmd)
        for marker, stderr in self.fail_commands.items():
            if marker in joined:
                return CommandResult(1, "", stderr)

        tool = cmd[0]
        if tool == "ip":
            return self._ip(cmd[1:])
        if tool == "ping":
            return self._ping(cmd[-1])
        if tool == "systemctl":
            return self._systemctl(cmd[1])
        if tool == "ovs-vsctl":
            return self._ovs_vsctl(cmd[1:])
        if tool == "ovs-ofctl":
            return self._ovs_ofctl(cmd[3:])
        return CommandResult(127, "", f"{tool}: command not found")

    def _missing(self, dev):
        return CommandResult(1, "", f'Cannot find device "{dev}"')

    def _ip(self, args) -> CommandResult:
        if args[:2] == ["link", "show"]:
            dev = args[2]
            return CommandResult(0, f"5: {dev}: <UP>") if dev in self.links else self._missing(dev)

        if args[:3] == ["-d", "link", "show"]:
            dev = args[3]
            if dev not in self.links:
                return self._missing(dev)
            flags = "POINTOPOINT,NOARP,UP,LOWER_UP" if self.links[dev] else "POINTOPOINT,NOARP"
            remote = self.tunnels.get(dev, ("0.0.0.0", ""))[0]
            return CommandResult(0, f"7: {dev}@eth0: <{flags}> mtu 1480\n"
                                    f"    link/ipip 172.16.1.5 peer {remote}\n")

        if args[:2] == ["tunnel", "del"] or args[:2] == ["link", "del"]:
            dev = args[2]
            if dev not in self.links:
                return self._missing(dev)
            del self.links[dev]
            self.tunnels.pop(dev, None)
            self.addresses.pop(dev, None)
            self.routes = {r for r in self.routes if r[1] != dev}
            return CommandResult(0)

        if args[:2] == ["tunnel", "add"]:
            name, remote, uplink = args[2], args[6], args[8]
            if name in self.links:
                return CommandResult(1, "", f"add tunnel \"{name}\" failed: File exists")
            self.links[name] = False
            self.tunnels[name] = (remote, uplink)
            return CommandResult(0)

        if args[:2] == ["addr", "add"]:
            addr, dev = args[2].split("/")[0], args[4]
            if dev not in self.links:
                return self._missing(dev)
            current = self.addresses.setdefault(dev, [])
            if addr in current:
                return CommandResult(2, "", "RTNETLINK answers: File exists")
            current.append(addr)
            return CommandResult(0)

        if args[:2] == ["link", "set"]:
            dev = args[2]
            if dev not in self.links:
                return self._missing(dev)
            self.links[dev] = args[3] == "up"
            return CommandResult(0)

        if args[:2] == ["route", "replace"]:
            dest, dev = args[2], args[4]
            if dev not in self.links:
                return self._missing(dev)
            self.routes.add((dest, dev))
            return CommandResult(0)

        return CommandResult(1, "", f"unsupported: ip {' '.join(args)}")

    def _ping(self, host) -> CommandResult:
        routed = any(dest == host and self.links.get(dev) for dest, dev in self.routes)
        if self.peer_reachable and routed:
            return CommandResult(0, "5 packets transmitted, 5 received")
        return CommandResult(1, "5 packets transmitted, 0 received, 100% packet loss")

    def _systemctl(self, action) -> CommandResult:
        if action == "stop":
            self.service_running = False
        elif action == "start":
            self.service_running = True
            self.polls_since_start = 0
            self.bridges.add("br0")
        return CommandResult(0)

    def _ovs_vsctl(self, args) -> CommandResult:
        if args[0] == "br-exists":
            return CommandResult(0 if args[1] in self.bridges else 2)
        if args[0] == "del-br":
            if args[1] not in self.bridges:
                return CommandResult(1, "", f"ovs-vsctl: no bridge named {args[1]}")
            self.bridges.discard(args[1])
            self.flows = []
            return CommandResult(0)
        return CommandResult(1, "", "unsupported")

    def _ovs_ofctl(self, args) -> CommandResult:
        action, bridge = args[0], args[1]
        if bridge not in self.bridges:
            return CommandResult(1, "", f"ovs-ofctl: {bridge} is not a bridge or a socket")

        if action == "dump-flows":
            header = "OFPST_FLOW reply (OF1.3) (xid=0x2):\n"
            if args[2] == "table=0":
                self.polls_since_start += 1
                ready = (self.service_running and self.baseline_delay is not None
                         and self.polls_since_start >= self.baseline_delay)
                return CommandResult(0, header + (BASELINE_FLOW + "\n" if ready else ""))
            cookie = args[2].split("/")[0]
            lines = [f" {rule}" for _, rule in self.flows if rule.startswith(cookie + ",")]
            return CommandResult(0, header + "".join(line + "\n" for line in lines))

        if action == "add-flow":
            rule = args[2]
            parts = dict(p.split("=", 1) for p in rule.split(",")[1:3])
            match = rule.split(",actions=")[0].split(",", 3)[3]
            key = (int(parts["table"]), int(parts["priority"]), match)
            self.flows = [(k, r) for k, r in self.flows if k != key]
            self.flows.append((key, rule))
            return CommandResult(0)

        return CommandResult(1, "", "unsupported")


@pytest.fixture
def host(monkeypatch):
    """가짜 호스트 (netifaces 포함)"""
    fake = FakeHost()
    monkeypatch.setattr(network.netifaces, "ifaddresses", fake.ifaddresses)
    monkeypatch.setattr(network.netifaces, "gateways", fake.gateways)
    return fake


@pytest.fixture
def sleeps():
    """sleep 호출 기록"""
    calls: List[float] = []
    return calls
