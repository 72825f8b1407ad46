"""
설정 관리 모듈
YAML 설정 파일 + 환경 변수 기반 불변 실행 설정
"""

import ipaddress
import os
import yaml
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional, Tuple
from .errors import ConfigError
from .fabric import DEFAULT_MAX_RETRIES
from .flows import subnet_prefix
from .logger import DEFAULT_LOG_DIR, parse_level


DEFAULT_APPLIANCE_TUNNEL_IP = "10.3.91.216"
DEFAULT_RAMP_TUNNEL_IP = "10.3.91.217"
DEFAULT_CLUSTER_CIDR = "10.128.0.0/14"
DEFAULT_SDN_SERVICE = "atomic-openshift-node"

DEFAULT_CONFIG_PATHS = [
    "/etc/sdn-ramp/config.yaml",
    "~/.sdn-ramp/config.yaml",
    "./config.yaml",
]

# 환경 변수 -> RunConfig 필드
ENV_OVERRIDES = {
    "APPLIANCE_TUNNEL_IP": "appliance_tunnel_address",
    "RAMP_TUNNEL_IP": "ramp_tunnel_address",
    "CLUSTER_CIDR": "cluster_cidr",
    "SDN_SERVICE": "fabric_service",
    "MAX_READY_RETRIES": "max_ready_retries",
    "GATEWAY_SUBNET": "gateway_subnet",
    "UPLINK_DEVICE": "uplink_device",
    "SDN_RAMP_LOG_DIR": "log_dir",
    "SDN_RAMP_LOG_LEVEL": "log_level",
}

# 설정 파일 (섹션, 키) -> RunConfig 필드
FILE_KEYS = {
    ("appliance", "tunnel_ip"): "appliance_tunnel_address",
    ("ramp", "tunnel_ip"): "ramp_tunnel_address",
    ("ramp", "uplink_device"): "uplink_device",
    ("cluster", "cidr"): "cluster_cidr",
    ("cluster", "gateway_subnet"): "gateway_subnet",
    ("fabric", "service"): "fabric_service",
    ("fabric", "max_ready_retries"): "max_ready_retries",
    ("agent", "log_dir"): "log_dir",
    ("agent", "log_level"): "log_level",
}


@dataclass(frozen=True)
class RunConfig:
    """실행 설정 (실행 중 변경 불가)"""
    appliance_internal_address: str
    appliance_tunnel_address: str = DEFAULT_APPLIANCE_TUNNEL_IP
    ramp_tunnel_address: str = DEFAULT_RAMP_TUNNEL_IP
    cluster_cidr: str = DEFAULT_CLUSTER_CIDR
    fabric_service: str = DEFAULT_SDN_SERVICE
    max_ready_retries: int = DEFAULT_MAX_RETRIES
    gateway_subnet: Optional[str] = None
    uplink_device: Optional[str] = None
    log_dir: str = DEFAULT_LOG_DIR
    log_level: str = "INFO"

    def validate(self):
        """값 검증, 실패 시 ConfigError"""
        for name in ("appliance_internal_address", "appliance_tunnel_address", "ramp_tunnel_address"):
            value = getattr(self, name)
            try:
                ipaddress.IPv4Address(value)
            except ipaddress.AddressValueError:
                raise ConfigError(f"{name} is not a valid IPv4 address: {value!r}")

        try:
            ipaddress.IPv4Network(self.cluster_cidr, strict=False)
        except ValueError:
            raise ConfigError(f"cluster_cidr is not a valid IPv4 CIDR: {self.cluster_cidr!r}")

        if not isinstance(self.max_ready_retries, int) or isinstance(self.max_ready_retries, bool):
            raise ConfigError(f"max_ready_retries must be an integer: {self.max_ready_retries!r}")
        if self.max_ready_retries < 1:
            raise ConfigError(f"max_ready_retries must be >= 1: {self.max_ready_retries}")

        if not self.fabric_service:
            raise ConfigError("fabric_service must not be empty")

        if self.gateway_subnet is not None:
            subnet_prefix(self.gateway_subnet)

        parse_level(self.log_level)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _coerce(field_name: str, value: Any) -> Any:
    """문자열 값을 필드 타입으로 변환"""
    if field_name == "max_ready_retries" and isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            raise ConfigError(f"max_ready_retries must be an integer: {value!r}")
    return value


class Config:
    """설정 파일 로더"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self.values: Dict[str, Any] = {}

        if config_path:
            self.load(config_path)
        else:
            self._load_from_default_paths()

    def _load_from_default_paths(self):
        """기본 경로에서 설정 파일 로드"""
        for path in DEFAULT_CONFIG_PATHS:
            expanded_path = os.path.expanduser(path)
            if os.path.exists(expanded_path):
                self.load(expanded_path)
                return

    def load(self, path: str):
        """설정 파일 로드"""
        path = os.path.expanduser(path)
        if not os.path.exists(path):
            raise ConfigError(f"Config file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        self._update_from_dict(data)
        self.config_path = path

    def _update_from_dict(self, data: Dict[str, Any]):
        """섹션별 키를 RunConfig 필드로 매핑"""
        for (section, key), field_name in FILE_KEYS.items():
            section_data = data.get(section) or {}
            if key in section_data and section_data[key] is not None:
                self.values[field_name] = _coerce(field_name, section_data[key])

    def _merged(self, environ: Optional[Mapping[str, str]]) -> Dict[str, Any]:
        environ = os.environ if environ is None else environ

        values = dict(self.values)
        for env_name, field_name in ENV_OVERRIDES.items():
            raw = environ.get(env_name)
            if raw:
                values[field_name] = _coerce(field_name, raw)
        return values

    def build(self, appliance_internal_address: str,
              environ: Optional[Mapping[str, str]] = None) -> RunConfig:
        """기본값 < 설정 파일 < 환경 변수 순으로 병합 후 검증"""
        config = RunConfig(appliance_internal_address=appliance_internal_address,
                           **self._merged(environ))
        config.validate()
        return config

    def logging_settings(self, environ: Optional[Mapping[str, str]] = None) -> Tuple[str, str]:
        """(log_dir, log_level) - 어플라이언스 주소 없이 쓰는 읽기 전용 명령용"""
        values = self._merged(environ)
        log_level = values.get("log_level", "INFO")
        parse_level(log_level)
        return values.get("log_dir", DEFAULT_LOG_DIR), log_level


def load_config(appliance_internal_address: str, config_path: Optional[str] = None,
                environ: Optional[Mapping[str, str]] = None) -> RunConfig:
    """실행 설정 생성"""
    return Config(config_path).build(appliance_internal_address, environ)


SAMPLE_CONFIG = f"""# SDN Ramp Agent Configuration File
# 이 파일을 /etc/sdn-ramp/config.yaml 로 복사하여 사용하세요
# 환경 변수가 설정 파일보다 우선합니다.

# 어플라이언스 설정 (내부 주소는 명령행 인자로 전달)
appliance:
  tunnel_ip: "{DEFAULT_APPLIANCE_TUNNEL_IP}"  # APPLIANCE_TUNNEL_IP

# 램프 노드 설정
ramp:
  tunnel_ip: "{DEFAULT_RAMP_TUNNEL_IP}"  # RAMP_TUNNEL_IP
  uplink_device: null  # UPLINK_DEVICE, 비워두면 기본 라우트 인터페이스 사용

# 클러스터 네트워크
cluster:
  cidr: "{DEFAULT_CLUSTER_CIDR}"  # CLUSTER_CIDR
  gateway_subnet: null  # GATEWAY_SUBNET, 비워두면 tun0 주소에서 감지 (예: "10.1.2")

# 가상 스위치
fabric:
  service: "{DEFAULT_SDN_SERVICE}"  # SDN_SERVICE
  max_ready_retries: {DEFAULT_MAX_RETRIES}  # MAX_READY_RETRIES

# 에이전트 설정
agent:
  log_dir: "{DEFAULT_LOG_DIR}"
  log_level: "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
"""


def create_sample(output_path: str):
    """샘플 설정 파일 생성"""
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(SAMPLE_CONFIG)
