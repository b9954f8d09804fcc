"""Middleware and exception handler registration."""

from fastapi import FastAPI

from recovery.config import Settings
from recovery.middleware.cors import setup_cors
from recovery.middleware.error_handler import setup_error_handlers
from recovery.middleware.logging import setup_logging
from recovery.middleware.rate_limit import RateLimitMiddleware
from recovery.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware. Starlette runs the last one added outermost.

    CORS goes last so its headers also land on 429 and 500 responses.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
