"""
Contrib — transport integrations, one submodule each.

    from salesbridge.wire.contrib import fastapi
"""

from . import fastapi

__all__ = ("fastapi",)
