"""
auth/sessions.py -- Server-side session store (login -> cached bearer value).

After a successful login or registration the API caches "Bearer <token>"
against the login. The Auth Gate reads it back on every protected request.

SessionStore is the contract; InMemorySessionStore is the only implementation
shipped. It is injected into the app at startup (app.state.sessions), so a
shared cache can replace it without touching the gate.

Concurrency: every request thread reads, and every login writes. All access
goes through a single threading.Lock around an OrderedDict.

Bounds: entries are never renewed on use. An entry is replaced on the next
successful auth for its login, dropped by purge_expired() once its token has
expired, or evicted oldest-first when max_entries is reached.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger("secretkeeper.sessions")


class SessionStore(Protocol):
    def get(self, login: str) -> str | None: ...

    def put(self, login: str, bearer_value: str) -> None: ...

    def delete(self, login: str) -> bool: ...

    def purge_expired(self, is_expired: Callable[[str], bool]) -> int: ...

    def __len__(self) -> int: ...


class InMemorySessionStore:
    """Thread-safe, size-bounded in-process session map.

    Usage:
        sessions = InMemorySessionStore(max_entries=10_000)
        sessions.put("alice", "Bearer eyJ...")
        sessions.get("alice")   # "Bearer eyJ..."
    """

    def __init__(self, max_entries: int = 10_000) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: OrderedDict[str, str] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, login: str) -> str | None:
        with self._lock:
            return self._entries.get(login)

    def put(self, login: str, bearer_value: str) -> None:
        """Create or overwrite the session for login.

        Overwriting moves the entry to the newest position so eviction order
        follows the most recent successful auth.
        """
        with self._lock:
            self._entries[login] = bearer_value
            self._entries.move_to_end(login)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.info("Session store full, evicted oldest session for %r", evicted)

    def delete(self, login: str) -> bool:
        with self._lock:
            return self._entries.pop(login, None) is not None

    def purge_expired(self, is_expired: Callable[[str], bool]) -> int:
        """Drop every entry for which is_expired(bearer_value) is True.

        The predicate runs under the lock; keep it CPU-only (token decode).
        Returns the number of entries removed.
        """
        with self._lock:
            stale = [login for login, value in self._entries.items() if is_expired(value)]
            for login in stale:
                del self._entries[login]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
