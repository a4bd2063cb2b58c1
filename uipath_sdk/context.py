"""Per-SDK-instance execution context shared with the request pipeline."""

import threading
from typing import Any, Dict, Optional


class ExecutionContext:
    """
    Headers and values shared by every request of one SDK instance.

    Context headers have the lowest precedence; the client's own headers
    and per-call headers override them.
    """

    def __init__(self, headers: Optional[Dict[str, str]] = None):
        self._headers: Dict[str, str] = dict(headers or {})
        self._values: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get_headers(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._headers)

    def set_headers(self, headers: Dict[str, str]) -> None:
        with self._lock:
            self._headers.update(headers)

    def remove_header(self, name: str) -> None:
        with self._lock:
            self._headers.pop(name, None)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value

    def clear(self) -> None:
        with self._lock:
            self._headers.clear()
            self._values.clear()
