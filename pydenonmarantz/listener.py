from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional
import logging


class Availability(Enum):
    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"


class StatusDetail(Enum):
    NONE = "none"
    CONFIGURATION_ERROR = "configuration_error"
    COMMUNICATION_ERROR = "communication_error"


class ConnectorListener(ABC):
    """Callbacks a connector delivers to its owner."""

    @abstractmethod
    def connected(self):
        """The connector has reached the receiver (socket up or first poll answered)."""
        pass

    @abstractmethod
    def state_changed(self, channel: str, value: Any):
        pass

    @abstractmethod
    def connection_error(self, error_message: str):
        """Called at most once per connector, after which it is disposed."""
        pass


class AVRHostListener(ABC):
    """Notifications the handler sends to its host."""

    @abstractmethod
    def report_availability(self, status: Availability, detail: StatusDetail = StatusDetail.NONE,
                            reason: Optional[str] = None):
        pass

    @abstractmethod
    def report_channel_value(self, channel: str, value: Any):
        pass

    def channels_updated(self, channels: list[str]):
        # By default, do nothing but can be overwritten to be notified when zone channels change.
        pass


class LoggingListener(AVRHostListener):

    def __init__(self, logger=logging):
        self.logger = logger

    def report_availability(self, status: Availability, detail: StatusDetail = StatusDetail.NONE,
                            reason: Optional[str] = None):
        if reason:
            self.logger.info(f"Receiver is {status.value} ({detail.value}): {reason}")
        else:
            self.logger.info(f"Receiver is {status.value}")

    def report_channel_value(self, channel: str, value: Any):
        self.logger.info(f"{channel} changed to: {value}")

    def channels_updated(self, channels: list[str]):
        self.logger.info(f"Channels: {', '.join(channels)}")
