"""HTTP surface for the callflow engine."""

from .app import create_app, main
from .dependencies import Engine, build_engine, get_engine
from .routes import router

__all__ = [
    "create_app",
    "main",
    "Engine",
    "build_engine",
    "get_engine",
    "router",
]
