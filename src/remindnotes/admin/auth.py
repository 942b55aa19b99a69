from __future__ import annotations

import hmac

import remindnotes.config.settings as settings
from fastapi import HTTPException, Request
from remindnotes.logger import get_logger

logger = get_logger("admin")

if not settings.ADMIN_AUTH_TOKEN:
    logger.warning("未配置 ADMIN_AUTH_TOKEN，管理 API 将不可访问")


def extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip()
    token_header = request.headers.get("X-Remindnotes-Token", "").strip()
    return token_header or None


async def require_admin_auth(request: Request) -> dict[str, str]:
    # 每次请求读取配置，便于运行时替换 token
    if not settings.ADMIN_AUTH_TOKEN:
        raise HTTPException(status_code=503, detail="ADMIN_AUTH_TOKEN 未配置")

    token = extract_token(request)
    if token and hmac.compare_digest(token, settings.ADMIN_AUTH_TOKEN):
        return {"auth": "token", "user": "admin-token"}

    logger.debug(f"管理 API 鉴权失败: path={request.url.path}")
    raise HTTPException(status_code=401, detail="未授权")
