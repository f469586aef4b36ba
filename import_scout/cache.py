from __future__ import annotations

import time
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar

ValueT = TypeVar("ValueT")


class TTLCache(Generic[ValueT]):
    """Process-owned cache whose entries expire after ``ttl`` seconds.

    Shared by reference between the adapters that need cross-session lookups
    (exchange rates, local marketplace suggestions). ``ttl=None`` keeps entries
    for the life of the process.
    """

    def __init__(self, *, ttl: Optional[float] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._store: Dict[Hashable, Dict[str, Any]] = {}

    def put(self, key: Hashable, value: ValueT, *, ttl: Optional[float] = None) -> None:
        lifetime = ttl if ttl is not None else self._ttl
        expiry = self._clock() + lifetime if lifetime else None
        self._store[key] = {"value": value, "expiry": expiry}

    def get(self, key: Hashable) -> Optional[ValueT]:
        payload = self._store.get(key)
        if payload is None:
            return None
        if self._expired(payload):
            self._store.pop(key, None)
            return None
        return payload["value"]

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._store)

    def clear(self) -> None:
        self._store.clear()

    def _expired(self, payload: Dict[str, Any]) -> bool:
        expiry = payload.get("expiry")
        return expiry is not None and expiry <= self._clock()


__all__ = ["TTLCache"]
