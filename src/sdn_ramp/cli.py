"""
CLI 메인 인터페이스
Click 및 Rich 기반 램프 노드 설정 CLI
"""

import sys
import click
from typing import Optional
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from . import __version__
from .config import Config, RunConfig, create_sample, load_config
from .errors import ConfigError, RampError
from .fabric import FabricResetter
from .flows import FLOW_RULE_COUNT, FlowProgrammer
from .logger import init_logger, get_logger
from .network import NetworkChecker
from .tunnel import LinkState, TunnelManager

console = Console()


class RampOrchestrator:
    """램프 노드 오케스트레이터

    TunnelManager -> FabricResetter -> FlowProgrammer 순서로 실행하고
    첫 번째 오류에서 중단한다. 롤백은 하지 않으며 전체 재실행으로 복구한다.
    """

    def __init__(self, config: RunConfig,
                 tunnel: Optional[TunnelManager] = None,
                 fabric: Optional[FabricResetter] = None,
                 flows: Optional[FlowProgrammer] = None):
        self.config = config
        self.logger = get_logger()
        self.tunnel = tunnel or TunnelManager(uplink=config.uplink_device)
        self.fabric = fabric or FabricResetter()
        self.flows = flows or FlowProgrammer()
        self.gateway_address: Optional[str] = None
        self.execution_log = []

    def log_step(self, step: str, status: str, message: str = ""):
        """실행 단계 기록"""
        self.execution_log.append({
            "step": step,
            "status": status,
            "message": message
        })

    def show_summary(self):
        """실행 결과 요약 표시"""
        table = Table(show_header=True, header_style="bold magenta", title="실행 결과 요약")
        table.add_column("단계", style="cyan", width=20)
        table.add_column("상태", width=6)
        table.add_column("메시지")

        for log in self.execution_log:
            status_icon = "✓" if log["status"] == "success" else "✗"
            status_color = "green" if log["status"] == "success" else "red"
            table.add_row(
                log["step"],
                f"[{status_color}]{status_icon}[/{status_color}]",
                log["message"]
            )

        console.print(table)

        log_files = self.logger.get_log_files()
        console.print(f"\n[bold]로그 파일:[/bold] {log_files['main_log']}")

    def run(self) -> bool:
        """메인 실행 로직"""
        cfg = self.config
        console.print(Panel.fit(
            "[bold cyan]SDN Ramp Agent[/bold cyan]\n"
            f"어플라이언스 {cfg.appliance_internal_address} 를 오버레이 네트워크에 연결합니다.",
            border_style="cyan"
        ))
        self.logger.info("=== Ramp reconciliation started ===")
        step = "터널 재생성"

        try:
            with self.logger.step("tunnel"):
                endpoint = self.tunnel.recreate_tunnel(
                    cfg.appliance_internal_address,
                    cfg.appliance_tunnel_address,
                    cfg.ramp_tunnel_address
                )
            self.log_step(step, "success", f"{endpoint.device_name} {endpoint.link_state.value}")

            step = "스위치 초기화"
            with self.logger.step("fabric"):
                state = self.fabric.reset_fabric(cfg.fabric_service, cfg.max_ready_retries)
            self.log_step(step, "success", f"{state.restart_attempt}회 폴링")

            step = "플로우 설치"
            with self.logger.step("flows"):
                self.gateway_address = self.flows.program_flows(
                    cfg.gateway_subnet,
                    cfg.appliance_tunnel_address,
                    cfg.cluster_cidr
                )
            self.log_step(step, "success", f"게이트웨이 {self.gateway_address}")

        except RampError as e:
            self.log_step(step, "failed", str(e))
            console.print(f"\n[red]✗ {step} 실패: {e}[/red]")
            self.logger.error(f"{type(e).__name__}: {e}")
            self.show_summary()
            return False

        except KeyboardInterrupt:
            self.log_step(step, "failed", "중단됨")
            console.print("\n[yellow]사용자에 의해 중단되었습니다.[/yellow]")
            self.logger.warning("Execution interrupted by user")
            return False

        except Exception as e:
            self.log_step(step, "failed", type(e).__name__)
            console.print(f"\n[red]예상치 못한 오류 발생 ({step})[/red]")
            self.logger.exception("Unexpected error occurred")
            return False

        self.logger.info("=== Ramp reconciliation completed successfully ===")
        self.show_summary()
        console.print("\n[bold green]✓ 램프 노드 설정 완료![/bold green]")
        return True


@click.group()
@click.version_option(version=__version__)
def cli():
    """SDN Ramp Agent

    IPIP 터널과 OVS 플로우로 로드밸런서 어플라이언스를 오버레이 네트워크에 연결합니다.
    """
    pass


@cli.command()
@click.argument('appliance_ip', required=False)
@click.option('--config', '-c', type=click.Path(exists=True), help='설정 파일 경로')
@click.option('--debug', is_flag=True, help='디버그 모드')
def connect(appliance_ip, config, debug):
    """어플라이언스 터널 및 플로우 설정 (재실행 가능)"""
    if not appliance_ip:
        console.print("[red]오류: 어플라이언스 내부 IP가 필요합니다.[/red]")
        console.print("[yellow]사용법: sdn-ramp connect APPLIANCE_IP[/yellow]")
        sys.exit(1)

    try:
        cfg = load_config(appliance_ip, config)
    except ConfigError as e:
        console.print(f"[red]✗ 설정 오류: {e}[/red]")
        sys.exit(1)

    init_logger(cfg.log_dir, cfg.log_level, debug)
    get_logger().info(f"Starting connect (appliance={appliance_ip}, debug={debug})")

    orchestrator = RampOrchestrator(cfg)
    success = orchestrator.run()

    sys.exit(0 if success else 1)


@cli.command()
@click.argument('output', type=click.Path(), default='./config.yaml')
def init(output):
    """샘플 설정 파일 생성"""
    create_sample(output)
    console.print(f"[green]✓ 샘플 설정 파일 생성: {output}[/green]")
    console.print("[cyan]설정 파일을 편집한 후 다음 명령어로 실행하세요:[/cyan]")
    console.print(f"[cyan]  sdn-ramp connect APPLIANCE_IP --config {output}[/cyan]")


@cli.command(name="show-config")
@click.argument('appliance_ip')
@click.option('--config', '-c', type=click.Path(exists=True), help='설정 파일 경로')
def show_config(appliance_ip, config):
    """최종 적용될 설정 표시"""
    try:
        cfg = load_config(appliance_ip, config)
    except ConfigError as e:
        console.print(f"[red]✗ 설정 오류: {e}[/red]")
        sys.exit(1)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("항목", style="cyan")
    table.add_column("값")

    for key, value in cfg.to_dict().items():
        table.add_row(key, "[dim]자동 감지[/dim]" if value is None else str(value))

    console.print(table)


@cli.command()
@click.option('--config', '-c', type=click.Path(exists=True), help='설정 파일 경로')
@click.option("--log-dir", type=click.Path(), envvar="SDN_RAMP_LOG_DIR",
              help="로그 디렉토리 경로 (기본값: 설정 파일의 agent.log_dir)")
@click.option('--debug', is_flag=True, help='디버그 모드')
def status(config, log_dir, debug):
    """터널 및 설치된 플로우 상태 조회 (읽기 전용)"""
    try:
        configured_dir, log_level = Config(config).logging_settings()
    except ConfigError as e:
        console.print(f"[red]✗ 설정 오류: {e}[/red]")
        sys.exit(1)

    init_logger(log_dir or configured_dir, log_level, debug)

    checker = NetworkChecker()
    tunnel = TunnelManager(checker=checker).describe()
    if tunnel:
        color = "green" if tunnel.link_state is LinkState.UP else "yellow"
        console.print(f"[{color}]터널 {tunnel.device_name}: {tunnel.link_state.value}[/{color}] "
                      f"peer={tunnel.remote_peer_address or '?'} local={tunnel.local_tunnel_address or '?'}")
    else:
        console.print("[red]✗ 터널이 없습니다.[/red]")

    try:
        flows = FlowProgrammer(checker=checker).installed_flows()
    except RampError as e:
        console.print(f"[red]✗ 플로우 조회 실패: {e}[/red]")
        sys.exit(1)

    console.print(f"설치된 램프 플로우: {len(flows)}개")
    for line in flows:
        console.print(f"  {line}", markup=False)

    sys.exit(0 if tunnel and len(flows) == FLOW_RULE_COUNT else 1)


def main():
    """메인 엔트리 포인트"""
    cli()


if __name__ == '__main__':
    main()
