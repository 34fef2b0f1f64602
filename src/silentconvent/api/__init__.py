"""FastAPI application exposing a Silent Convent play session."""

from .app import PlaySession, create_app

__all__ = ["create_app", "PlaySession"]
