from __future__ import annotations

import asyncio
import time
from datetime import timedelta
from pathlib import Path
from typing import Any

import remindnotes.config.settings as settings
import remindnotes.core.entries as entries
import remindnotes.storage.db_config as db_config
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from remindnotes.channels.toast import ToastFeed
from remindnotes.datamodel import ItemType
from remindnotes.errors import ValidationError
from remindnotes.logger import error_log_path, get_logger
from remindnotes.metrics import runtime_metrics
from remindnotes.storage.items import item_to_dict
from remindnotes.utils import now_local
from remindnotes.world.due import describe_status
from remindnotes.world.reminder import get_status as get_scheduler_status

from .auth import require_admin_auth
from .logs import parse_levels, read_log_tail
from .schemas import AddNoteRequest, AddReminderRequest, RuntimeControl, ShutdownRequest

logger = get_logger("admin")


def create_app(control: RuntimeControl, toast_feed: ToastFeed | None = None) -> FastAPI:
    app = FastAPI(title="Remindnotes Admin API", version="0.3.0")

    def alarm_window() -> timedelta:
        # 与运行中的调度器保持一致，未配置调度器时使用配置值
        status = get_scheduler_status()
        return timedelta(seconds=float(status.get("tolerance_seconds") or settings.ALARM_TOLERANCE_SECONDS))

    @app.get("/healthz", include_in_schema=False)
    async def healthz() -> PlainTextResponse:
        return PlainTextResponse("ok")

    @app.get("/api/v1/health")
    async def api_health() -> dict[str, Any]:
        return {
            "status": "ok",
            "now_utc": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "uptime_seconds": max(0.0, time.time() - control.started_at),
            "db_connected": db_config.conn is not None,
            "scheduler_running": bool(get_scheduler_status().get("running")),
            "shutdown_requested": control.shutdown_event.is_set(),
        }

    @app.get("/api/v1/auth/check")
    async def auth_check(request: Request) -> dict[str, bool]:
        await require_admin_auth(request)
        return {"ok": True}

    @app.get("/api/v1/metrics")
    async def get_metrics(request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        return {
            "runtime": runtime_metrics.snapshot(),
            "components": {
                "db": {"connected": db_config.conn is not None},
                "scheduler": get_scheduler_status(),
                "toast_feed": {"enabled": toast_feed is not None, "size": len(toast_feed) if toast_feed else 0},
            },
            "active_tasks": len(asyncio.all_tasks()),
        }

    # ----------------- 条目 ----------------
    @app.get("/api/v1/items")
    async def get_items(
        request: Request,
        type: str | None = None,
        q: str | None = None,
        limit: int = Query(default=50, ge=1, le=500),
        offset: int = Query(default=0, ge=0),
    ) -> dict[str, Any]:
        await require_admin_auth(request)
        try:
            items = entries.list_items(type)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"未知条目类型: {type}, 可选: {[t.value for t in ItemType]}")

        if q:
            keyword = q.strip().lower()
            items = [item for item in items if keyword in item.title.lower()]

        now = now_local()
        window = alarm_window()
        return {
            "items": [
                {**item_to_dict(item), "status": describe_status(item, now, window)}
                for item in items[offset:offset + limit]
            ],
            "total": len(items),
            "limit": limit,
            "offset": offset,
        }

    @app.post("/api/v1/reminders", status_code=201)
    async def create_reminder(payload: AddReminderRequest, request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        try:
            reminder = await entries.add_reminder(**payload.model_dump())
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"item": item_to_dict(reminder)}

    @app.post("/api/v1/notes", status_code=201)
    async def create_note(payload: AddNoteRequest, request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        try:
            note = await entries.add_note(**payload.model_dump())
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"item": item_to_dict(note)}

    @app.delete("/api/v1/items/{item_id}")
    async def delete_item(item_id: str, request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        if not await entries.delete_item(item_id):
            raise HTTPException(status_code=404, detail="条目不存在")
        return {"id": item_id, "deleted": True}

    # ----------------- 提示与日志 ----------------
    @app.get("/api/v1/notifications")
    async def get_notifications(
        request: Request,
        limit: int = Query(default=20, ge=1, le=200),
    ) -> dict[str, Any]:
        await require_admin_auth(request)
        toasts = toast_feed.recent(limit) if toast_feed is not None else []
        return {"items": [t.to_dict() for t in toasts], "limit": limit}

    @app.get("/api/v1/logs")
    async def get_logs(
        request: Request,
        lines: int = Query(default=200, ge=1, le=5000),
        levels: str | None = None,
        component: str | None = None,
        q: str | None = None,
        stream: str = Query(default="main", pattern="^(main|error)$"),
    ) -> dict[str, Any]:
        await require_admin_auth(request)
        base_path = Path(settings.LOG_FILE)
        path = error_log_path(base_path) if stream == "error" else base_path
        level_set = parse_levels(levels)
        return {
            "stream": stream,
            "file": str(path),
            "levels": sorted(level_set),
            "lines": read_log_tail(path, lines, levels=level_set, component=component, keyword=q),
        }

    @app.post("/api/v1/admin/shutdown")
    async def admin_shutdown(payload: ShutdownRequest, request: Request) -> dict[str, Any]:
        auth_info = await require_admin_auth(request)
        logger.warning(f"收到远程关闭请求: by={auth_info['user']}, reason={payload.reason}")
        control.shutdown_event.set()
        return {"ok": True, "action": "shutdown", "reason": payload.reason}

    return app
