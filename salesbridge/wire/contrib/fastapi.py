"""
FastAPI integration for salesbridge.wire.

    from salesbridge.wire.contrib import fastapi
    app = fastapi.create_app(commits, api_key=settings.api_key)
"""

from ._fastapi import (
    API_KEY_HEADER,
    REQUEST_ID_HEADER,
    create_app,
)

__all__ = (
    "API_KEY_HEADER",
    "REQUEST_ID_HEADER",
    "create_app",
)
