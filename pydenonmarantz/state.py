"""In-memory mirror of the receiver state."""

import logging
import threading
from typing import Any, Callable, Iterable, Optional

from pydenonmarantz import channels
from pydenonmarantz.exceptions import UnsupportedCommand


def default_value(channel: str) -> Any:
    """Value shown for a channel the receiver hasn't reported yet.

    Power channels read as off until told otherwise, everything else is unknown.
    """
    try:
        _, function = channels.parse_channel(channel)
    except UnsupportedCommand:
        return None
    if function in (channels.POWER, channels.DEVICE_POWER):
        return False
    return None


class StateStore:
    """Thread-safe map of channel key to the last value the receiver reported.

    on_change is called with (channel, value) after every apply() that
    changed the stored value. It runs outside the store lock.
    """

    def __init__(self, on_change: Optional[Callable[[str, Any], None]] = None):
        self._logger = logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._values: dict[str, Any] = {}
        self._on_change = on_change

    def apply(self, channel: str, value: Any) -> bool:
        """Store a value, returns True if it differed from the stored one."""
        with self._lock:
            if channel in self._values and self._values[channel] == value:
                return False
            self._values[channel] = value
        self._logger.debug(f"State {channel} = {value}")
        if self._on_change:
            self._on_change(channel, value)
        return True

    def get(self, channel: str) -> Any:
        """Stored value, or None if nothing was reported."""
        with self._lock:
            return self._values.get(channel)

    def get_state(self, channel: str) -> Any:
        """Value to show for a channel: the stored value or its default."""
        with self._lock:
            if channel in self._values:
                return self._values[channel]
        return default_value(channel)

    def remove(self, removed: Iterable[str]):
        with self._lock:
            for channel in removed:
                self._values.pop(channel, None)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._values)

    def clear(self):
        with self._lock:
            self._values.clear()

    def __contains__(self, channel: str) -> bool:
        with self._lock:
            return channel in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)
