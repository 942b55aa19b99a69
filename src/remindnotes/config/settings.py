import os
from dotenv import load_dotenv
from remindnotes.logger import get_logger, normalize_level
load_dotenv()

logger = get_logger("config")

__all__ = [
    "STORE_DB_PATH",
    "ALARM_CHECK_INTERVAL_SECONDS", "ALARM_TOLERANCE_SECONDS",
    "ALARM_TOAST_DURATION_MS", "ALARM_MESSAGE_TEMPLATE",
    "ENTRY_TOAST_DURATION_MS", "TOAST_FEED_SIZE",
    "ENABLE_ADMIN_HTTP", "ADMIN_HTTP_HOST", "ADMIN_HTTP_PORT", "ADMIN_AUTH_TOKEN",
    "LOG_FILE", "LOG_LEVEL", "CONSOLE_LOG_LEVEL", "LOG_ROTATION", "LOG_RETENTION_DAYS",
]


def _parse_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on", "y")


def _parse_float(name: str, default: float, *, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"{name} 非法: {raw!r}, 已回退到 {default}")
        return default
    if value <= minimum:
        logger.warning(f"{name} 必须大于 {minimum}: {raw!r}, 已回退到 {default}")
        return default
    return value


def _parse_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"{name} 非法: {raw!r}, 已回退到 {default}")
        return default
    if value <= minimum:
        logger.warning(f"{name} 必须大于 {minimum}: {raw!r}, 已回退到 {default}")
        return default
    return value


# 存储
STORE_DB_PATH = os.getenv("STORE_DB_PATH", "data/remindnotes.db")

# 闹钟调度
ALARM_CHECK_INTERVAL_SECONDS = _parse_float("ALARM_CHECK_INTERVAL_SECONDS", 30.0)
ALARM_TOLERANCE_SECONDS = _parse_float("ALARM_TOLERANCE_SECONDS", 60.0)
ALARM_TOAST_DURATION_MS = _parse_int("ALARM_TOAST_DURATION_MS", 10000)
ALARM_MESSAGE_TEMPLATE = os.getenv("ALARM_MESSAGE_TEMPLATE", '"{title}" is scheduled for now.')

if ALARM_TOLERANCE_SECONDS <= ALARM_CHECK_INTERVAL_SECONDS:
    # 容差窗口不大于轮询间隔时，两次 tick 之间可能漏掉到期的提醒
    logger.warning(
        f"ALARM_TOLERANCE_SECONDS({ALARM_TOLERANCE_SECONDS}) 不大于 "
        f"ALARM_CHECK_INTERVAL_SECONDS({ALARM_CHECK_INTERVAL_SECONDS}), 部分提醒可能被跳过"
    )

# 新增/删除条目时的提示
ENTRY_TOAST_DURATION_MS = _parse_int("ENTRY_TOAST_DURATION_MS", 5000)
TOAST_FEED_SIZE = _parse_int("TOAST_FEED_SIZE", 100)

# Admin API
ENABLE_ADMIN_HTTP = _parse_bool("ENABLE_ADMIN_HTTP", True)
ADMIN_HTTP_HOST = os.getenv("ADMIN_HTTP_HOST", "127.0.0.1")
ADMIN_HTTP_PORT = _parse_int("ADMIN_HTTP_PORT", 18080)
ADMIN_AUTH_TOKEN = os.getenv("ADMIN_AUTH_TOKEN", "")

# 日志
LOG_FILE = os.getenv("LOG_FILE", "logs/remindnotes.log")
LOG_LEVEL = normalize_level(os.getenv("LOG_LEVEL", "TRACE"))
CONSOLE_LOG_LEVEL = normalize_level(os.getenv("CONSOLE_LOG_LEVEL", "INFO"))
LOG_ROTATION = os.getenv("LOG_ROTATION", "10 MB")
LOG_RETENTION_DAYS = _parse_int("LOG_RETENTION_DAYS", 30)
