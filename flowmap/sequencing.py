"""
Per-field request sequencing.

Writes for the same (entity, field) can be in flight at the same time, and
their responses may arrive out of order. Every write takes a ticket from
issue(); when its response comes back, is_current() tells whether a newer
write for the same key has been issued since. Stale responses are dropped
instead of overwriting newer local state.
"""

import logging
from typing import Dict, Hashable

logger = logging.getLogger(__name__)


class RequestSequencer:
    def __init__(self):
        self._latest: Dict[Hashable, int] = {}

    def issue(self, key: Hashable) -> int:
        seq = self._latest.get(key, 0) + 1
        self._latest[key] = seq
        return seq

    def is_current(self, key: Hashable, seq: int) -> bool:
        current = self._latest.get(key, 0) == seq
        if not current:
            logger.debug(f"Discarding stale response for {key} (seq {seq}, latest {self._latest.get(key)})")
        return current

    def latest(self, key: Hashable) -> int:
        return self._latest.get(key, 0)
