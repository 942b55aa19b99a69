"""日志模块

基于 loguru。进程启动时调用一次 setup_logging，之后各模块通过 get_logger("组件名") 取得带组件标签的 logger，
日志行形如:

    2024-01-01 09:00:00.000 | INFO     | scheduler | remindnotes.world.reminder:tick:160 - tick 完成 ...

ERROR 及以上级别另写一份到 <name>_error.log，管理 API 的日志接口按这两个文件读取。
未调用 setup_logging 时(例如测试中)沿用 loguru 默认的 stderr 输出。
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Literal, Union

from loguru import logger

LogLevel = Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL", "FATAL"]

DEFAULT_COMPONENT = "app"

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level:<8}</level> | "
    "<magenta>{extra[component]:<9}</magenta> | "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {extra[component]} | "
    "{name}:{function}:{line} - {message}"
)


def normalize_level(level: Union[str, LogLevel]) -> str:
    """统一为大写；FATAL 视为 CRITICAL"""
    value = str(level).strip().upper()
    return "CRITICAL" if value == "FATAL" else value


def error_log_path(log_file: Union[str, Path]) -> Path:
    """foo.log -> foo_error.log"""
    log_file = Path(log_file)
    return log_file.with_name(f"{log_file.stem}_error{log_file.suffix}")


def setup_logging(
    log_level: LogLevel,
    log_file: Union[str, Path],
    console_level: LogLevel = "INFO",
    *,
    rotation: str = "10 MB",
    retention_days: int = 30,
) -> None:
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_sink = dict(
        format=FILE_FORMAT,
        rotation=rotation,
        compression="zip",
        encoding="utf-8",
        enqueue=True,
    )
    logger.configure(
        extra={"component": DEFAULT_COMPONENT},
        handlers=[
            {
                "sink": sys.stderr,
                "level": normalize_level(console_level),
                "format": CONSOLE_FORMAT,
                "colorize": True,
            },
            {
                "sink": log_file,
                "level": normalize_level(log_level),
                "retention": f"{retention_days} days",
                **file_sink,
            },
            {
                # 错误日志保留更久
                "sink": error_log_path(log_file),
                "level": "ERROR",
                "retention": f"{retention_days * 3} days",
                **file_sink,
            },
        ],
    )


def get_logger(component: str = DEFAULT_COMPONENT):
    return logger.bind(component=component)


__all__ = ["setup_logging", "get_logger", "logger", "normalize_level", "error_log_path"]
