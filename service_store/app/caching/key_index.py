"""
Secondary index from player ID to the derived-cache keys written for them.
"""

from __future__ import annotations

import threading
from collections import Counter
from typing import Callable, Dict, Hashable, List, Set, Tuple

IndexedKey = Tuple[str, Hashable]  # (cache name, key)


class PlayerKeyIndex:
    """
    Tracks which derived-cache entries belong to which player.

    Maintained on write by the derived caches and consumed on session removal,
    so invalidation touches only that player's keys instead of scanning every
    key for a substring match.

    Writers that await an upstream fetch take a ``checkpoint()`` first and ask
    ``removed_since`` before storing, so a fetch that was in flight when the
    player was removed cannot bring their entries back. Removal markers are
    only kept while such a checkpoint is outstanding.
    """

    def __init__(self) -> None:
        self._keys: Dict[str, Set[IndexedKey]] = {}
        self._epoch = 0
        self._removed_at: Dict[str, int] = {}
        self._pending: Counter = Counter()
        self._lock = threading.Lock()

    def add(self, player_id: str, cache_name: str, key: Hashable) -> None:
        with self._lock:
            self._keys.setdefault(player_id, set()).add((cache_name, key))

    def discard(self, player_id: str, cache_name: str, key: Hashable) -> None:
        with self._lock:
            keys = self._keys.get(player_id)
            if keys is None:
                return
            keys.discard((cache_name, key))
            if not keys:
                del self._keys[player_id]

    def get(self, player_id: str) -> Set[IndexedKey]:
        with self._lock:
            return set(self._keys.get(player_id, ()))

    def pop(self, player_id: str) -> Set[IndexedKey]:
        """Remove and return every key recorded for ``player_id``."""
        with self._lock:
            self._epoch += 1
            if self._pending:
                self._removed_at[player_id] = self._epoch
            return self._keys.pop(player_id, set())

    def checkpoint(self) -> int:
        """Open a write window; pair with ``release``."""
        with self._lock:
            self._pending[self._epoch] += 1
            return self._epoch

    def removed_since(self, player_id: str, checkpoint: int) -> bool:
        with self._lock:
            return self._removed_at.get(player_id, -1) > checkpoint

    def release(self, checkpoint: int) -> None:
        """Close a write window and forget markers no open window can see."""
        with self._lock:
            self._pending[checkpoint] -= 1
            if self._pending[checkpoint] <= 0:
                del self._pending[checkpoint]
            if not self._pending:
                self._removed_at.clear()
                return
            oldest = min(self._pending)
            for player_id in [p for p, epoch in self._removed_at.items() if epoch <= oldest]:
                del self._removed_at[player_id]

    def prune(self, is_live: Callable[[str, Hashable], bool]) -> int:
        """Drop keys whose cache entry is gone; returns how many were dropped."""
        with self._lock:
            snapshot: List[Tuple[str, Set[IndexedKey]]] = [(p, set(k)) for p, k in self._keys.items()]

        dropped = 0
        for player_id, keys in snapshot:
            for cache_name, key in keys:
                if not is_live(cache_name, key):
                    self.discard(player_id, cache_name, key)
                    dropped += 1
        return dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)
