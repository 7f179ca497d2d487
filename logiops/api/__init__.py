"""
JSON HTTP API (FastAPI).

Every response uses the envelope ``{"ok": true, "data": ...}`` or
``{"ok": false, "error": {"code", "message", "details"}}``.
"""

from .app import create_app

__all__ = ["create_app"]
