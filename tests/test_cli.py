"""
CLI 테스트
"""

import subprocess
import pytest
from click.testing import CliRunner
from sdn_ramp import cli as cli_module
from sdn_ramp import shell
from sdn_ramp.cli import cli
from sdn_ramp.flows import FlowProgrammer
from sdn_ramp.tunnel import TunnelManager


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.setattr("sdn_ramp.config.DEFAULT_CONFIG_PATHS", [])
    monkeypatch.setenv("SDN_RAMP_LOG_DIR", str(tmp_path / "logs"))
    return CliRunner()


@pytest.fixture
def no_mutation(monkeypatch):
    """외부 명령이나 오케스트레이터가 호출되면 실패"""
    def forbidden(*args, **kwargs):
        raise AssertionError("network mutation attempted")

    monkeypatch.setattr(shell.subprocess, "run", forbidden)
    monkeypatch.setattr(cli_module, "RampOrchestrator", forbidden)


class FakeOrchestrator:
    result = True
    created = []

    def __init__(self, config):
        self.config = config
        FakeOrchestrator.created.append(config)

    def run(self):
        return FakeOrchestrator.result


@pytest.fixture
def fake_orchestrator(monkeypatch):
    FakeOrchestrator.created = []
    FakeOrchestrator.result = True
    monkeypatch.setattr(cli_module, "RampOrchestrator", FakeOrchestrator)
    return FakeOrchestrator


def test_connect_without_argument(runner, no_mutation):
    """필수 인자 누락 시 사용법 출력 및 종료 코드 1"""
    result = runner.invoke(cli, ["connect"])
    assert result.exit_code == 1
    assert "사용법" in result.output


def test_connect_invalid_config(runner, no_mutation, monkeypatch):
    monkeypatch.setenv("MAX_READY_RETRIES", "0")
    result = runner.invoke(cli, ["connect", "172.16.1.10"])
    assert result.exit_code == 1


def test_connect_invalid_log_level(runner, no_mutation, monkeypatch):
    """잘못된 로그 레벨은 설정 오류로 종료 (트레이스백 없음)"""
    monkeypatch.setenv("SDN_RAMP_LOG_LEVEL", "verbose")
    result = runner.invoke(cli, ["connect", "172.16.1.10"])
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "log_level" in result.output


def test_connect_success(runner, fake_orchestrator, monkeypatch):
    monkeypatch.setenv("GATEWAY_SUBNET", "10.1.2")
    result = runner.invoke(cli, ["connect", "172.16.1.10"])
    assert result.exit_code == 0
    config = fake_orchestrator.created[0]
    assert config.appliance_internal_address == "172.16.1.10"
    assert config.gateway_subnet == "10.1.2"


def test_connect_failure_exit_code(runner, fake_orchestrator):
    fake_orchestrator.result = False
    result = runner.invoke(cli, ["connect", "172.16.1.10"])
    assert result.exit_code == 1


def test_init_writes_sample(runner, tmp_path):
    output = tmp_path / "sample.yaml"
    result = runner.invoke(cli, ["init", str(output)])
    assert result.exit_code == 0
    assert "max_ready_retries: 42" in output.read_text()


def test_show_config(runner, monkeypatch):
    monkeypatch.setenv("SDN_SERVICE", "origin-node")
    result = runner.invoke(cli, ["show-config", "172.16.1.10"])
    assert result.exit_code == 0
    assert "origin-node" in result.output


def test_status_reports_flows(runner, host, tmp_path, monkeypatch):
    """설치된 플로우 개수 조회"""
    TunnelManager(runner=host).recreate_tunnel("172.16.1.10", "10.3.91.216", "10.3.91.217")
    FlowProgrammer(runner=host).program_flows("10.1.2", "10.3.91.216", "10.128.0.0/14")

    def fake_run(cmd, capture_output=True, text=True, timeout=None):
        r = host(cmd)
        return subprocess.CompletedProcess(cmd, r.returncode, r.stdout, r.stderr)

    monkeypatch.setattr(shell.subprocess, "run", fake_run)

    result = runner.invoke(cli, ["status", "--log-dir", str(tmp_path / "logs")])
    assert result.exit_code == 0
    assert "7" in result.output


def test_status_log_dir_from_config(runner, host, tmp_path, monkeypatch):
    """--log-dir 없으면 설정 파일의 agent.log_dir 사용"""
    monkeypatch.delenv("SDN_RAMP_LOG_DIR")
    log_dir = tmp_path / "from-config"
    path = tmp_path / "config.yaml"
    path.write_text(f"agent:\n  log_dir: \"{log_dir}\"\n")

    def fake_run(cmd, capture_output=True, text=True, timeout=None):
        r = host(cmd)
        return subprocess.CompletedProcess(cmd, r.returncode, r.stdout, r.stderr)

    monkeypatch.setattr(shell.subprocess, "run", fake_run)

    result = runner.invoke(cli, ["status", "--config", str(path)])
    assert result.exit_code == 1
    assert list(log_dir.glob("ramp_*.log"))


def test_status_log_dir_from_environment(runner, host, tmp_path, monkeypatch):
    log_dir = tmp_path / "from-env"
    monkeypatch.setenv("SDN_RAMP_LOG_DIR", str(log_dir))
    monkeypatch.setattr(shell.subprocess, "run",
                        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 1, "", "not found"))

    result = runner.invoke(cli, ["status"])
    assert result.exit_code == 1
    assert list(log_dir.glob("ramp_*.log"))


def test_status_invalid_log_level(runner, no_mutation, monkeypatch):
    monkeypatch.setenv("SDN_RAMP_LOG_LEVEL", "verbose")
    result = runner.invoke(cli, ["status"])
    assert result.exit_code == 1
    assert "log_level" in result.output
