from remindnotes.channels.base import NotificationSink
from remindnotes.logger import get_logger

logger = get_logger("notify")

__all__ = ["LoggerSink"]


class LoggerSink(NotificationSink):
    """把提示写进日志，适合无界面运行"""

    def __init__(self, level: str = "INFO") -> None:
        self.level = level

    def notify(self, title: str, message: str, visibility_duration_ms: int) -> None:
        logger.log(self.level, f"[提示] {title} - {message} ({visibility_duration_ms}ms)")
