"""WatchTime web application package.

Serve with ``uvicorn watchtime.webapp:app``.
"""
from __future__ import annotations

from . import config
from .application import app, engine, event_log, store, watch_engine

__all__ = ["app", "config", "engine", "event_log", "store", "watch_engine"]
