from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field


@dataclass
class RuntimeControl:
    shutdown_event: asyncio.Event
    started_at: float


class ShutdownRequest(BaseModel):
    reason: str = Field(default="manual")


class AddReminderRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    category: str = Field(default="general-reminders")
    date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    time: Optional[str] = Field(default=None, description="HH:MM")


class AddNoteRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=5000)
    category: str = Field(default="general-notes")
    date: Optional[str] = None
    time: Optional[str] = None
