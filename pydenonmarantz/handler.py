"""Receiver handler - ties the connector, the state store and the host together.

This module contains:
- The handler state machine (stopped, connecting, online, retrying, disposed)
- Creating connectors through the factory and replacing them on reconnect
- Routing host commands to the active connector
- Provisioning zone channels for the configured zone count
- Reporting availability and channel values to the host

Every connector gets a generation number. Callbacks from a connector whose
generation is no longer current are discarded, so a disposed connector can
never update state or availability.
"""

import asyncio
import logging
import threading
from enum import Enum
from typing import Any, Callable, Optional

import aiohttp

from pydenonmarantz.channels import MAIN_ZONE_CHANNELS
from pydenonmarantz.commands import REFRESH, command_for_channel
from pydenonmarantz.config import AVRConfiguration
from pydenonmarantz.connector import AVRConnector, create_connector
from pydenonmarantz.exceptions import ConfigurationError, TransportError, UnsupportedCommand
from pydenonmarantz.listener import AVRHostListener, Availability, ConnectorListener, StatusDetail
from pydenonmarantz.provisioner import provision_zone_channels
from pydenonmarantz.state import StateStore

RETRY_TIME_SECONDS = 30


class HandlerState(Enum):
    STOPPED = "stopped"
    CONNECTING = "connecting"
    ONLINE = "online"
    OFFLINE_RETRYING = "offline_retrying"
    DISPOSED = "disposed"


class HandlerConnectorListener(ConnectorListener):
    """Forwards connector callbacks to the handler with the connector's generation."""

    def __init__(self, handler: "AVRHandler", generation: int):
        self._handler = handler
        self._generation = generation

    def connected(self):
        self._handler._on_connected(self._generation)

    def state_changed(self, channel: str, value: Any):
        self._handler._on_state_changed(self._generation, channel, value)

    def connection_error(self, error_message: str):
        self._handler._on_connection_error(self._generation, error_message)


class AVRHandler:
    """Keeps one receiver in sync and routes commands to it.

    Connection problems never raise to the host, they are reported through
    AVRHostListener.report_availability() and retried every retry_time
    seconds until stop() is called.
    """

    def __init__(
        self,
        config: AVRConfiguration,
        listener: AVRHostListener,
        connector_factory: Callable[..., AVRConnector] = create_connector,
        retry_time: float = RETRY_TIME_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
        channels: Optional[list[str]] = None,
        loop=None,
    ):
        """Initialize handler.

        Args:
            config: Receiver configuration, validated on start()
            listener: Host notified of availability and channel values
            connector_factory: Builds a connector for each connection attempt
            retry_time: Seconds to wait before reconnecting after an error
            session: Optional shared aiohttp session for the HTTP connector
            channels: Channels the host already has, defaults to the main zone channels
            loop: Event loop to schedule on, defaults to the current one
        """
        self._logger = logging.getLogger(__name__)
        self._loop = loop or asyncio.get_event_loop()
        self._config = config
        self._listener = listener
        self._connector_factory = connector_factory
        self._retry_time = retry_time
        self._session = session

        # Serializes state updates, command routing and connector replacement
        self._lock = threading.RLock()
        self._state = HandlerState.STOPPED
        self._availability = Availability.UNKNOWN
        # Whether the host asked to run, configuration changes only restart a running handler
        self._started = False
        self._store: Optional[StateStore] = None
        self._connector: Optional[AVRConnector] = None
        self._generation = 0
        self._retry_handle: Optional[asyncio.TimerHandle] = None

        self._channels: list[str] = list(channels) if channels is not None else list(MAIN_ZONE_CHANNELS)
        self._channel_set = set(self._channels)

    # ========== Properties ==========

    @property
    def state(self) -> HandlerState:
        return self._state

    @property
    def availability(self) -> Availability:
        return self._availability

    @property
    def config(self) -> AVRConfiguration:
        return self._config

    @property
    def channels(self) -> list[str]:
        return list(self._channels)

    @property
    def store(self) -> Optional[StateStore]:
        return self._store

    @property
    def connector(self) -> Optional[AVRConnector]:
        return self._connector

    @property
    def retry_pending(self) -> bool:
        return self._retry_handle is not None

    # ========== Lifecycle ==========

    def start(self) -> bool:
        """Validate the configuration and start connecting.

        Returns False when the configuration is invalid (reported to the host
        as a configuration error) or the handler was already stopped.
        """
        with self._lock:
            if self._state is HandlerState.DISPOSED:
                self._logger.warning("Handler has been stopped, create a new one to reconnect")
                return False
            if self._state is not HandlerState.STOPPED:
                self._logger.debug(f"Handler already started ({self._state.value})")
                return True
            self._started = True
            self._cancel_retry()

            try:
                self._config.validate()
            except ConfigurationError as e:
                self._logger.error(f"Invalid configuration for {self._config.host}: {e}")
                self._report_availability(Availability.OFFLINE, StatusDetail.CONFIGURATION_ERROR, str(e))
                return False

            self._store = StateStore(on_change=self._report_channel_value)
            self._configure_zone_channels()
            # Availability is known once the receiver answers
            self._report_availability(Availability.UNKNOWN)
            self._create_connection()
            return True

    def stop(self):
        """Disconnect for good. Pending retries are cancelled."""
        with self._lock:
            if self._state is HandlerState.DISPOSED:
                return
            self._teardown()
            self._state = HandlerState.DISPOSED
            self._logger.info(f"Stopped handler for {self._config.host}")

    async def async_stop(self):
        """stop() and wait until the connector released its connection."""
        connector = self._connector
        self.stop()
        if connector is not None:
            await connector.async_close()

    def update_configuration(self, config: AVRConfiguration):
        """Apply a new configuration.

        A different zone count alone reconciles the zone channels in place,
        anything else restarts the handler. Before start() the configuration
        is only stored.
        """
        with self._lock:
            if self._state is HandlerState.DISPOSED or config == self._config:
                return
            if not self._started:
                self._logger.debug("Handler not started, using the new configuration on start()")
                self._config = config
                return
            if (
                config.only_zone_count_differs(self._config)
                and self._state is not HandlerState.STOPPED
            ):
                try:
                    config.validate()
                except ConfigurationError as e:
                    self._logger.error(f"Invalid configuration for {config.host}: {e}")
                    self._teardown()
                    self._config = config
                    self._report_availability(Availability.OFFLINE, StatusDetail.CONFIGURATION_ERROR, str(e))
                    return
                self._logger.info(f"Zone count changed from {self._config.zone_count} to {config.zone_count}")
                self._config = config
                self._configure_zone_channels()
                if self._state in (HandlerState.CONNECTING, HandlerState.ONLINE):
                    # The connector only knows the zones it was created for
                    self._create_connection()
                return

            self._logger.info(f"Configuration changed, restarting handler for {config.host}")
            self._teardown()
            self._config = config
            self.start()

    def _teardown(self):
        self._cancel_retry()
        self._generation += 1
        if self._connector is not None:
            self._connector.dispose()
            self._connector = None
        if self._store is not None:
            self._store.clear()
            self._store = None
        self._state = HandlerState.STOPPED

    # ========== Host API ==========

    def handle_command(self, channel: str, value: Any) -> bool:
        """Send a value to a channel.

        Returns True if a command was handed to the connector. Commands are
        dropped, not queued, while there is no connector.
        """
        with self._lock:
            connector = self._connector
            if connector is None:
                self._logger.debug(f"Dropping command {value!r} for channel {channel}, not connected")
                return False
            if value is REFRESH and not connector.supports_refresh:
                # Polling refreshes all channels together at the polling interval
                self._logger.debug(f"Not refreshing {channel}, the connector can't refresh single channels")
                return False
            try:
                command = command_for_channel(channel, value, self._config.zone_count)
                connector.send(command)
            except UnsupportedCommand as e:
                self._logger.debug(f"Unsupported command {value!r} for channel {channel}: {e}")
                return False
            except TransportError as e:
                self._logger.warning(f"Command {value!r} for channel {channel} not sent: {e}")
                return False
            return True

    def channel_linked(self, channel: str):
        """Report the current value of a channel the host just started showing."""
        with self._lock:
            if self._store is None or channel not in self._channel_set:
                return
            value = self._store.get_state(channel)
        if value is not None:
            self._report_channel_value(channel, value)

    # ========== Connector callbacks ==========

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self._connector is not None

    def _on_connected(self, generation: int):
        with self._lock:
            if not self._is_current(generation):
                return
            if self._connector.online_on_connect:
                self._go_online()
            else:
                self._logger.debug(f"Connected to {self._config.host}, waiting for the first status")

    def _on_state_changed(self, generation: int, channel: str, value: Any):
        with self._lock:
            if not self._is_current(generation):
                return
            if self._state not in (HandlerState.CONNECTING, HandlerState.ONLINE):
                return
            self._go_online()
            if channel not in self._channel_set:
                self._logger.debug(f"Ignoring {channel} = {value}, channel is not configured")
                return
            self._store.apply(channel, value)

    def _on_connection_error(self, generation: int, error_message: str):
        with self._lock:
            if not self._is_current(generation):
                return
            self._logger.error(
                f"Disconnected from {self._config.host}: {error_message}, "
                f"will try to reconnect in {self._retry_time} seconds"
            )
            if self._availability is not Availability.OFFLINE:
                self._report_availability(
                    Availability.OFFLINE, StatusDetail.COMMUNICATION_ERROR, error_message
                )
            self._connector.dispose()
            self._connector = None
            self._state = HandlerState.OFFLINE_RETRYING
            self._schedule_retry()

    # ========== Connection management ==========

    def _create_connection(self):
        with self._lock:
            if self._state is HandlerState.DISPOSED:
                return
            if self._connector is not None:
                self._connector.dispose()
                self._connector = None
            self._generation += 1
            self._state = HandlerState.CONNECTING
            self._connector = self._connector_factory(
                self._config,
                self._store,
                HandlerConnectorListener(self, self._generation),
                loop=self._loop,
                session=self._session,
            )
            self._logger.info(f"Connecting to {self._config.host} ({type(self._connector).__name__})")
            self._connector.connect()

    def _schedule_retry(self):
        # Only one retry may be pending
        self._cancel_retry()
        self._retry_handle = self._loop.call_later(self._retry_time, self._retry)

    def _cancel_retry(self):
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    def _retry(self):
        with self._lock:
            self._retry_handle = None
            if self._state is not HandlerState.OFFLINE_RETRYING:
                return
            self._logger.info(f"Reconnecting to {self._config.host}")
            self._create_connection()

    def _go_online(self):
        self._state = HandlerState.ONLINE
        # Don't flood the host with 'online' each time a single channel changed
        if self._availability is not Availability.ONLINE:
            self._report_availability(Availability.ONLINE)

    # ========== Zone channels ==========

    def _configure_zone_channels(self):
        self._logger.debug("Configuring zone channels")
        channels = provision_zone_channels(self._channels, self._config.zone_count)
        if channels == self._channels:
            return
        removed = [channel for channel in self._channels if channel not in channels]
        self._channels = channels
        self._channel_set = set(channels)
        if removed and self._store is not None:
            self._store.remove(removed)
        try:
            self._listener.channels_updated(list(channels))
        except Exception as e:
            self._logger.error(f"Exception in channels_updated() callback: {e}")

    # ========== Host notifications ==========

    def _report_availability(self, status: Availability, detail: StatusDetail = StatusDetail.NONE,
                             reason: Optional[str] = None):
        self._availability = status
        # Don't let host exceptions prevent reconnection
        try:
            self._listener.report_availability(status, detail, reason)
        except Exception as e:
            self._logger.error(f"Exception in report_availability() callback: {e}")

    def _report_channel_value(self, channel: str, value: Any):
        self._logger.debug(f"Received state {value} for channel {channel}")
        try:
            self._listener.report_channel_value(channel, value)
        except Exception as e:
            self._logger.error(f"Exception in report_channel_value() callback: {e}")
