import re
from datetime import date, datetime, time, timezone

__all__ = ["now_utc", "now_utc_iso", "now_local", "to_local_naive",
           "parse_hhmm", "parse_iso_date", "combine_local", "TIME_PATTERN"]

# HH:MM，小时允许省略前导零
TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def now_utc() -> datetime:
    """获取当前 UTC 时间"""
    return datetime.now(timezone.utc)


def now_utc_iso() -> str:
    """获取当前 UTC 时间字符串，格式: 'YYYY-MM-DDTHH:MM:SS.mmmZ'"""
    return now_utc().isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_local() -> datetime:
    """获取主机本地时间(naive)"""
    return datetime.now()


def to_local_naive(dt: datetime) -> datetime:
    # 带时区的时间先换算到主机时区再去掉 tzinfo，naive 时间视为本地时间
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


def parse_hhmm(value: str) -> time:
    """解析 'HH:MM'，格式非法时抛出 ValueError"""
    match = TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"时间格式非法, 预期 HH:MM: {value!r}")
    return time(hour=int(match.group(1)), minute=int(match.group(2)))


def parse_iso_date(value: str) -> date:
    """解析 'YYYY-MM-DD'，也接受完整的 ISO 时间字符串(只取日期部分)"""
    if not isinstance(value, str) or len(value.strip()) < 10:
        raise ValueError(f"日期格式非法, 预期 YYYY-MM-DD: {value!r}")
    return date.fromisoformat(value.strip()[:10])


def combine_local(day: str, hhmm: str) -> datetime:
    """把条目的 date 和 time 合成本地时间，秒固定为 0"""
    return datetime.combine(parse_iso_date(day), parse_hhmm(hhmm))
