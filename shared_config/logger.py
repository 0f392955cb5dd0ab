"""
Loguru 기반 로깅 설정

모든 분석 단계가 공유하는 단일 loguru 로거를 구성합니다.
콘솔 포맷은 VSCode 에서 클릭 가능한 file.path:line 형식이며,
로그 레코드의 extra["unit"] 에 분석 중인 번역 단위(file_id)가 실립니다.
"""
import functools
import os
import sys
import time
from pathlib import Path
from typing import Optional

from loguru import logger

LOG_LEVEL_ENV = "C_ANALYZER_LOG_LEVEL"
DEFAULT_LEVEL = os.getenv(LOG_LEVEL_ENV, "INFO")

# 번역 단위를 바인딩하지 않은 로그의 표시값
NO_UNIT = "-"

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <7}</level> | "
    "<magenta>{extra[unit]}</magenta> | "
    "<cyan>{file.path}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <7} | "
    "{extra[unit]} | "
    "{file.path}:{line} in {function}() | "
    "{message}"
)

logger.remove()
logger.configure(extra={"unit": NO_UNIT})

_console_handler_id = logger.add(sys.stderr, format=CONSOLE_FORMAT, level=DEFAULT_LEVEL, colorize=True)


def set_console_level(level: str) -> int:
    """콘솔 핸들러를 주어진 레벨로 다시 등록하고 새 핸들러 ID 반환"""
    global _console_handler_id
    logger.remove(_console_handler_id)
    _console_handler_id = logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)
    return _console_handler_id


def setup_file_logging(
    log_dir: str = "./logs",
    level: str = "DEBUG",
    rotation: str = "10 MB",
    retention: str = "7 days",
    serialize: bool = False,
) -> int:
    """
    분석 로그 파일 핸들러 추가

    Args:
        log_dir: 로그 디렉토리 (없으면 생성)
        level: 파일에 남길 최소 레벨
        rotation: 로테이션 기준 (크기 또는 주기)
        retention: 보관 기간
        serialize: True 이면 JSON lines 로 기록 (리포트 도구 연동용)

    Returns:
        추가된 핸들러 ID (logger.remove 에 사용)
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    handler_id = logger.add(
        str(log_path / "c_analyzer_{time:YYYY-MM-DD}.log"),
        format=FILE_FORMAT,
        level=level,
        rotation=rotation,
        retention=retention,
        serialize=serialize,
        encoding="utf-8",
        enqueue=True,
    )
    logger.info(f"파일 로깅 시작: {log_path}")
    return handler_id


def get_logger(module_name: Optional[str] = None, unit: Optional[str] = None):
    """
    모듈/번역 단위가 바인딩된 로거 반환

    사용 예:
        log = get_logger("preprocessor", unit="sample.c")
        log.debug("조건부 지시문 처리")
    """
    bound = {}
    if module_name:
        bound["module"] = module_name
    if unit:
        bound["unit"] = unit
    return logger.bind(**bound) if bound else logger


class LogStage:
    """
    파이프라인 단계의 시작/완료/소요 시간을 기록하는 컨텍스트 매니저

    번역 단위가 많을 때 INFO 로그가 넘치지 않도록 기본 레벨은 DEBUG 입니다.
    예외가 발생하면 WARNING 으로 중단을 남기고 예외는 그대로 전파합니다.

    사용 예:
        with LogStage("전처리", file="sample.c"):
            ...
    """

    def __init__(self, stage_name: str, level: str = "DEBUG", **context):
        self.stage_name = stage_name
        self.level = level
        self.context = context
        self.elapsed = 0.0
        self._started = 0.0
        unit = context.get("file")
        self._log = logger.bind(unit=unit) if unit else logger

    def __enter__(self):
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        suffix = f" ({details})" if details else ""
        self._log.opt(depth=1).log(self.level, f"[시작] {self.stage_name}{suffix}")
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.perf_counter() - self._started
        if exc_type:
            self._log.opt(depth=1).warning(f"[중단] {self.stage_name}: {exc_type.__name__}: {exc_val}")
        else:
            self._log.opt(depth=1).log(self.level, f"[완료] {self.stage_name} ({self.elapsed * 1000:.1f}ms)")
        return False


def log_step(step_name: str):
    """함수 호출을 단계로 기록하는 데코레이터 (실패 시 ERROR 후 재발생)"""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger.debug(f"[단계] {step_name}")
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(f"[실패] {step_name}: {e}")
                raise
            logger.debug(f"[완료] {step_name}")
            return result
        return wrapper
    return decorator


__all__ = [
    "logger",
    "get_logger",
    "setup_file_logging",
    "set_console_level",
    "LogStage",
    "log_step",
    "CONSOLE_FORMAT",
    "FILE_FORMAT",
    "LOG_LEVEL_ENV",
]
