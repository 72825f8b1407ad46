"""
로깅 시스템
실행 단위 로그 파일, 에러 전용 로그, rich 콘솔 출력
진행 중인 단계(tunnel / fabric / flows)를 메시지에 표시
"""

import logging
import os
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional
from rich.logging import RichHandler
from rich.console import Console
from .errors import ConfigError

console = Console()

LOGGER_NAME = "sdn_ramp"
DEFAULT_LOG_DIR = "/var/log/sdn-ramp"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

FILE_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def parse_level(value) -> int:
    """로그 레벨 이름을 logging 상수로 변환, 잘못된 값은 ConfigError"""
    if not isinstance(value, str) or value.strip().upper() not in LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}: {value!r}")
    return getattr(logging, value.strip().upper())


class AgentLogger(logging.LoggerAdapter):
    """램프 에이전트 로거

    실행마다 ramp_<시각>.log 와 error_<시각>.log 를 만든다.
    step() 블록 안에서 남긴 메시지에는 "[단계]" 접두사가 붙는다.
    """

    def __init__(self, log_dir: str = DEFAULT_LOG_DIR, log_level: str = "INFO", debug: bool = False):
        super().__init__(logging.getLogger(LOGGER_NAME), {})
        self.log_dir = log_dir
        self.level = logging.DEBUG if debug else parse_level(log_level)
        self.debug_mode = debug
        self.current_step: Optional[str] = None

        os.makedirs(log_dir, exist_ok=True)
        run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.log_file = os.path.join(log_dir, f"ramp_{run_id}.log")
        self.error_file = os.path.join(log_dir, f"error_{run_id}.log")

        self.logger.setLevel(self.level)
        self._reset_handlers()

        formatter = logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
        self._attach(logging.FileHandler(self.log_file, encoding='utf-8'), self.level, formatter)
        self._attach(logging.FileHandler(self.error_file, encoding='utf-8'), logging.ERROR, formatter)
        self._attach(
            RichHandler(console=console, rich_tracebacks=True, show_time=False, show_path=debug),
            self.level
        )

    def _reset_handlers(self):
        # 재초기화 시 이전 실행의 파일 핸들 정리
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)

    def _attach(self, handler: logging.Handler, level: int,
                formatter: Optional[logging.Formatter] = None):
        handler.setLevel(level)
        if formatter:
            handler.setFormatter(formatter)
        self.logger.addHandler(handler)

    def process(self, msg, kwargs):
        if self.current_step:
            msg = f"[{self.current_step}] {msg}"
        return msg, kwargs

    @contextmanager
    def step(self, name: str) -> Iterator["AgentLogger"]:
        """블록 동안 메시지에 단계 이름 표시"""
        previous, self.current_step = self.current_step, name
        try:
            yield self
        finally:
            self.current_step = previous

    def get_log_files(self) -> dict:
        """로그 파일 경로 반환"""
        return {
            "main_log": self.log_file,
            "error_log": self.error_file,
            "log_dir": self.log_dir
        }


# 글로벌 로거 인스턴스
_logger: Optional[AgentLogger] = None


def get_logger() -> AgentLogger:
    """로거 인스턴스 가져오기 (초기화 전이면 기본 경로 사용)"""
    global _logger
    if _logger is None:
        _logger = AgentLogger()
    return _logger


def init_logger(log_dir: str, log_level: str, debug: bool) -> AgentLogger:
    """로거 초기화"""
    global _logger
    _logger = AgentLogger(log_dir, log_level, debug)
    return _logger
