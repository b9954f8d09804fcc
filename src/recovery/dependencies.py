"""Shared FastAPI dependencies.

The storage backend, notification hub and settings are owned by the
application and live on ``app.state``.
"""

from datetime import datetime

from fastapi import Request

from recovery.clock import utcnow
from recovery.config import Settings
from recovery.storage.base import Storage
from recovery.ws.hub import NotificationHub


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_hub(request: Request) -> NotificationHub:
    return request.app.state.hub


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_now() -> datetime:
    """Request time. Overridden in tests to move the clock."""
    return utcnow()
