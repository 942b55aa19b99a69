"""错误类型

- ValidationError: 创建条目时字段缺失或格式非法，直接抛给调用方，条目不会进入存储
- ParseWarning: tick 过程中遇到无法解析的 date/time，只在 tick 内部处理并记录一次
- SinkFailure: 通知通道失败，tick 内部处理，提醒仍视为“已尝试”
"""

from __future__ import annotations

__all__ = ["RemindNotesError", "ValidationError", "ParseWarning", "SinkFailure"]


class RemindNotesError(Exception):
    pass


class ValidationError(RemindNotesError):
    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ParseWarning(RemindNotesError):
    def __init__(self, message: str, item_id: str | None = None) -> None:
        super().__init__(message)
        self.item_id = item_id


class SinkFailure(RemindNotesError):
    pass
