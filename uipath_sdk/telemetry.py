"""
Usage telemetry for the UiPath SDK.

Events are handed to an optional sink (e.g. an exporter supplied by the
host) and logged at debug level. Telemetry never raises into SDK calls.
"""

import functools
import logging
import platform
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

SDK_RUN_EVENT = "Sdk.Run"
SDK_AUTH_EVENT = "Sdk.Auth"

F = TypeVar("F", bound=Callable[..., Any])


class TelemetryClient:
    """
    Collects SDK usage events for one SDK instance.

    Attributes:
        enabled: When False, events are dropped
        sink: Callable receiving (event_name, properties)
        base_properties: Properties attached to every event
    """

    def __init__(
        self,
        enabled: bool = True,
        sink: Optional[Callable[[str, Dict[str, Any]], None]] = None,
        base_properties: Optional[Dict[str, Any]] = None,
    ):
        self.enabled = enabled
        self.sink = sink
        self.base_properties: Dict[str, Any] = {
            "runtime": f"python-{platform.python_version()}",
            **(base_properties or {}),
        }

    def track_event(self, name: str, properties: Optional[Dict[str, Any]] = None) -> None:
        """Record an event. Sink failures are logged and ignored."""
        if not self.enabled:
            return

        event = {
            **self.base_properties,
            **(properties or {}),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        logger.debug(f"Telemetry event {name}: {event}")
        if self.sink is None:
            return
        try:
            self.sink(name, event)
        except Exception as e:
            logger.debug(f"Telemetry sink failed for {name}: {e}")


def track(client: TelemetryClient, method_name: str, fn: F) -> F:
    """
    Wrap ``fn`` so each call records an ``Sdk.Run`` event first.

    Args:
        client: Telemetry client receiving the events
        method_name: Value of the event's ``method`` property
        fn: Function to wrap

    Returns:
        Wrapped function with the same signature
    """

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        client.track_event(SDK_RUN_EVENT, {"method": method_name})
        return fn(*args, **kwargs)

    return wrapper  # type: ignore[return-value]
