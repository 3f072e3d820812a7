# arena/deps.py
from fastapi import Request

from arena.errors import StoreError


def get_context(request: Request):
    """FastAPI dependency returning the ArenaContext built at start-up."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise StoreError("Service is starting up")
    return context
