from abc import ABC, abstractmethod

from pydenonmarantz.commands import AVRCommand


class AVRConnector(ABC):
    """One connection to the receiver.

    A connector reports to the ConnectorListener it was created with and is
    used for a single connection attempt: after connection_error() or
    dispose() it stays disposed and a new connector has to be created.
    """

    # Whether connected() means the receiver state is known. When False the
    # owner waits for the first state_changed() before calling it online.
    online_on_connect: bool = False
    # Whether single channels can be queried with refresh commands.
    supports_refresh: bool = True

    @abstractmethod
    def connect(self):
        """Start connecting in the background, returns immediately."""
        pass

    @abstractmethod
    def dispose(self):
        """Close the connection and stop all tasks. Safe to call more than once."""
        pass

    @abstractmethod
    def send(self, command: AVRCommand):
        """Send a command to the receiver.

        Raises:
            TransportError: if there is no live connection
        """
        pass

    @property
    @abstractmethod
    def disposed(self) -> bool:
        pass

    async def async_close(self):
        """Dispose and wait until the connection is released."""
        self.dispose()
