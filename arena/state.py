"""Client-side state: the signed-in session and the challenge list cache."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from arena.schemas import Challenge, User

_LOGGER = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20

AuthListener = Callable[[Optional[User]], None]


class SessionStore:
    """Holds the current user and notifies subscribers when it changes."""

    def __init__(self) -> None:
        self.user: Optional[User] = None
        self.is_loading = True
        self._listeners: list[AuthListener] = []

    def subscribe(self, callback: AuthListener) -> Callable[[], None]:
        """Call ``callback`` now and after every change; returns an unsubscribe function."""
        self._listeners.append(callback)
        callback(self.user)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback(self.user)

    def set_user(self, user: Optional[User]) -> None:
        self.user = user
        self.is_loading = False
        self._notify()

    def set_loading(self, loading: bool) -> None:
        self.is_loading = loading

    def update_user(self, updates: Mapping[str, Any]) -> None:
        if self.user is None:
            return
        self.user = self.user.model_copy(update=dict(updates))
        self._notify()

    def clear_user(self) -> None:
        self.user = None
        self.is_loading = False
        self._notify()


class ChallengeCache:
    """Cached challenge listing plus the challenge currently being viewed."""

    def __init__(self) -> None:
        self.challenges: list[Challenge] = []
        self.current: Optional[Challenge] = None
        self.is_loading = False
        self.cursor: Optional[str] = None
        self.has_more = True
        self.filters: dict[str, Any] = {}

    def set_challenges(self, challenges: list[Challenge]) -> None:
        self.challenges = list(challenges)

    def add(self, challenge: Challenge) -> None:
        self.challenges.insert(0, challenge)

    def update(self, challenge_id: str, updates: Mapping[str, Any]) -> None:
        self.challenges = [
            c.model_copy(update=dict(updates)) if c.id == challenge_id else c for c in self.challenges
        ]
        if self.current is not None and self.current.id == challenge_id:
            self.current = self.current.model_copy(update=dict(updates))

    def replace(self, challenge: Challenge) -> None:
        self.challenges = [challenge if c.id == challenge.id else c for c in self.challenges]
        if self.current is not None and self.current.id == challenge.id:
            self.current = challenge

    def remove(self, challenge_id: str) -> None:
        self.challenges = [c for c in self.challenges if c.id != challenge_id]
        if self.current is not None and self.current.id == challenge_id:
            self.current = None

    def set_current(self, challenge: Optional[Challenge]) -> None:
        self.current = challenge

    def clear(self) -> None:
        self.challenges = []
        self.current = None
        self.cursor = None
        self.has_more = True
        self.filters = {}

    async def fetch(self, source, filters: Optional[Mapping[str, Any]] = None, reset: bool = False) -> None:
        """Load a page from ``source.list_challenges``; append unless ``reset``."""
        if filters is not None:
            self.filters = dict(filters)
        if reset:
            self.cursor = None
            self.has_more = True

        limit = self.filters.get("limit") or DEFAULT_PAGE_SIZE
        query = {**self.filters, "limit": limit}

        self.is_loading = True
        try:
            page = await source.list_challenges(**query, cursor=self.cursor)
        finally:
            self.is_loading = False

        self.challenges = list(page.items) if reset else [*self.challenges, *page.items]
        self.cursor = page.next_cursor
        self.has_more = len(page.items) == limit
        _LOGGER.debug("Fetched %s challenges (has_more=%s)", len(page.items), self.has_more)

    async def load_more(self, source) -> None:
        if self.is_loading or not self.has_more:
            return
        await self.fetch(source)

    async def refresh(self, source) -> None:
        await self.fetch(source, reset=True)


__all__ = ["ChallengeCache", "DEFAULT_PAGE_SIZE", "SessionStore"]
