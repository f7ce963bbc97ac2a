from __future__ import annotations

import asyncio
import logging
import threading

from .ports import NameResolverPort


def fallback_label(player_id: int) -> str:
    return f"Player_{player_id}"


class DisplayNameCache:
    """Player id to display name cache filled by background lookups.

    ``label`` never waits: it returns whatever is cached, or a label derived
    from the id. ``prefetch`` schedules at most one lookup per id on the running
    event loop and returns immediately.
    """

    def __init__(self, resolver: NameResolverPort | None = None, logger: logging.Logger | None = None):
        self._resolver = resolver
        self._logger = logger or logging.getLogger(__name__)
        self._names: dict[int, str] = {}
        self._pending: set[int] = set()
        self._tasks: set[asyncio.Task] = set()
        self._lock = threading.Lock()

    def label(self, player_id: int) -> str:
        with self._lock:
            return self._names.get(player_id) or fallback_label(player_id)

    def remember(self, player_id: int, name: str | None) -> None:
        name = (name or "").strip()
        if not name:
            return
        with self._lock:
            self._names[player_id] = name

    def forget(self, player_id: int) -> None:
        with self._lock:
            self._names.pop(player_id, None)

    def prefetch(self, player_id: int) -> bool:
        if self._resolver is None:
            return False
        with self._lock:
            if player_id in self._names or player_id in self._pending:
                return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._logger.debug("No running loop; name lookup for %s skipped", player_id)
            return False
        with self._lock:
            self._pending.add(player_id)
        task = loop.create_task(self._lookup(player_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _lookup(self, player_id: int) -> None:
        try:
            name = await self._resolver.resolve(player_id)
        except Exception:
            self._logger.debug("Name lookup failed for %s", player_id, exc_info=True)
            name = None
        finally:
            with self._lock:
                self._pending.discard(player_id)
        self.remember(player_id, name)
