from __future__ import annotations

import asyncio
import time

import uvicorn
from remindnotes.channels.toast import ToastFeed
from remindnotes.config.settings import ADMIN_HTTP_HOST, ADMIN_HTTP_PORT
from remindnotes.logger import get_logger

from .app import create_app
from .schemas import RuntimeControl

logger = get_logger("admin")


async def _stop_on_shutdown(shutdown_event: asyncio.Event, server: uvicorn.Server) -> None:
    await shutdown_event.wait()
    server.should_exit = True


async def main_loop(shutdown_event: asyncio.Event, toast_feed: ToastFeed | None = None) -> None:
    """在当前事件循环中运行管理 API，shutdown_event 置位后退出"""
    app = create_app(
        RuntimeControl(shutdown_event=shutdown_event, started_at=time.time()),
        toast_feed=toast_feed,
    )
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=ADMIN_HTTP_HOST,
            port=ADMIN_HTTP_PORT,
            log_level="warning",
            access_log=False,
        )
    )
    # 系统信号由 main.py 统一处理
    server.install_signal_handlers = lambda: None

    stopper = asyncio.create_task(_stop_on_shutdown(shutdown_event, server), name="admin-http-stopper")
    logger.info(f"Admin HTTP 服务启动: http://{ADMIN_HTTP_HOST}:{ADMIN_HTTP_PORT}")
    try:
        await server.serve()
    finally:
        stopper.cancel()
        try:
            await stopper
        except asyncio.CancelledError:
            pass
        logger.info("Admin HTTP 服务已关闭")
