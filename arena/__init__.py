"""Competitive-coding events backend."""

# Re-export the common database helpers for convenience.
from .database import Base, create_engine_for, create_session_factory, init_models  # noqa: F401

__all__ = ["Base", "create_engine_for", "create_session_factory", "init_models"]
