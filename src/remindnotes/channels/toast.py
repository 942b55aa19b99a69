from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass

from remindnotes.channels.base import NotificationSink
from remindnotes.events import E, bus
from remindnotes.utils import now_utc_iso

__all__ = ["Toast", "ToastFeed"]


@dataclass(frozen=True)
class Toast:
    title: str
    message: str
    visibility_duration_ms: int
    shown_at_utc: str

    def to_dict(self) -> dict:
        return asdict(self)


class ToastFeed(NotificationSink):
    """保留最近的提示供界面轮询，并在事件总线上广播 toast.shown"""

    def __init__(self, maxlen: int = 100) -> None:
        self._toasts: deque[Toast] = deque(maxlen=maxlen)

    def notify(self, title: str, message: str, visibility_duration_ms: int) -> None:
        toast = Toast(
            title=title,
            message=message,
            visibility_duration_ms=int(visibility_duration_ms),
            shown_at_utc=now_utc_iso(),
        )
        self._toasts.append(toast)
        bus.emit(E.TOAST_SHOWN, toast)

    def recent(self, limit: int = 20) -> list[Toast]:
        """按时间倒序返回最近的提示"""
        if limit <= 0:
            return []
        return list(self._toasts)[-limit:][::-1]

    def clear(self) -> None:
        self._toasts.clear()

    def __len__(self) -> int:
        return len(self._toasts)
