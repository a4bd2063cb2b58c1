"""
Pluggable surfaces the SDK core depends on.

The token and flow logic never touches the environment directly. It talks
to a key/value ``Storage``, a ``Clock`` and (for the redirect flow) a
``Location`` holding the current URL. In-memory implementations are
provided here; a file-backed storage lives in ``auth.token_storage``.
"""

import threading
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class Storage(Protocol):
    """String key/value persistence."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


@runtime_checkable
class Clock(Protocol):
    """Source of the current time (timezone-aware)."""

    def now(self) -> datetime: ...


@runtime_checkable
class Location(Protocol):
    """The URL the redirect flow landed on."""

    @property
    def href(self) -> str: ...

    def replace(self, url: str) -> None: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class MemoryStorage:
    """Thread-safe in-process storage. Contents are lost on exit."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class MemoryLocation:
    """Holds the current URL for hosts without a browser address bar."""

    def __init__(self, href: str = ""):
        self._href = href

    @property
    def href(self) -> str:
        return self._href

    def replace(self, url: str) -> None:
        self._href = url
