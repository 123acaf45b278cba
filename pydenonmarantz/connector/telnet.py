import asyncio
import logging
import re
from asyncio import Task
from typing import Any, Callable, Optional

from pydenonmarantz import channels
from pydenonmarantz.commands import AVRCommand, DB_OFFSET, refresh_commands, to_wire
from pydenonmarantz.config import AVRConfiguration
from pydenonmarantz.connector.base import AVRConnector
from pydenonmarantz.exceptions import ParseError, TransportError
from pydenonmarantz.listener import ConnectorListener

CONNECT_TIMEOUT = 5.0
# A run of malformed lines this long means the stream is garbage, not one bad line
MAX_CONSECUTIVE_PARSE_ERRORS = 10

# The receiver sends one status per line, terminated by CR:
# PWON / PWSTANDBY      receiver power
# ZMON / ZMOFF          main zone power
# MUON / MUOFF          main zone mute
# MV50 / MV505          main zone volume 50 / 50.5 (dB = volume - 80)
# MVMAX 98              volume limit, ignored
# SITUNER               main zone input
# MSSTEREO              surround mode
# Z2ON / Z2MUON / Z250 / Z2TUNER   zone 2 power / mute / volume / input
VOLUME_VALUE = re.compile(r"^(\d{2})(5?)$")
ZONE_RESPONSE = re.compile(r"^Z([2-4])(.*)$")
# Zone statuses that aren't power, mute, volume or input
ZONE_IGNORED_PREFIXES = ("CV", "PS", "SLP", "QUICK", "SMART", "HPF", "HDA", "SS", "STBY", "CS", "FAVORITE")


def _on_off(value: str, line: str) -> bool:
    if value == "ON":
        return True
    if value in ("OFF", "STANDBY"):
        return False
    raise ParseError(f"Expected ON/OFF in {line!r}")


def _volume(zone: int, value: str, line: str) -> list[tuple[str, Any]]:
    match = VOLUME_VALUE.match(value)
    if not match:
        raise ParseError(f"Invalid volume in {line!r}")
    volume = float(int(match.group(1)))
    if match.group(2):
        volume += 0.5
    return [
        (channels.zone_channel(zone, channels.VOLUME), volume),
        (channels.zone_channel(zone, channels.VOLUME_DB), volume - DB_OFFSET),
    ]


def parse_telnet_line(line: str) -> list[tuple[str, Any]]:
    """Turn one status line into (channel, value) pairs.

    Lines the engine doesn't track give an empty list.

    Raises:
        ParseError: if a tracked status has a malformed value
    """
    line = line.strip()
    if not line:
        return []

    if line.startswith("PW"):
        return [(channels.DEVICE_POWER, _on_off(line[2:], line))]
    if line.startswith("ZM"):
        return [(channels.POWER, _on_off(line[2:], line))]
    if line.startswith("MU"):
        return [(channels.MUTE, _on_off(line[2:], line))]
    if line.startswith("MVMAX"):
        return []
    if line.startswith("MV"):
        return _volume(1, line[2:], line)
    if line.startswith("SI"):
        source = line[2:].strip()
        return [(channels.INPUT, source)] if source else []
    if line.startswith("MS"):
        mode = line[2:].strip()
        if not mode or mode.startswith(("QUICK", "SMART", "MAX")):
            return []
        return [(channels.MODE, mode)]

    zone_match = ZONE_RESPONSE.match(line)
    if zone_match:
        zone = int(zone_match.group(1))
        rest = zone_match.group(2).strip()
        if rest in ("ON", "OFF"):
            return [(channels.zone_channel(zone, channels.POWER), rest == "ON")]
        if rest in ("MUON", "MUOFF"):
            return [(channels.zone_channel(zone, channels.MUTE), rest == "MUON")]
        if rest[:1].isdigit():
            return _volume(zone, rest, line)
        if not rest or rest.startswith(ZONE_IGNORED_PREFIXES) or rest.startswith("MU"):
            return []
        return [(channels.zone_channel(zone, channels.INPUT), rest)]

    return []


class TelnetConnector(asyncio.Protocol, AVRConnector):
    """Persistent telnet connection, pushes every status line as it arrives."""

    online_on_connect = False
    supports_refresh = True

    _received_message: str
    _connect_task: Optional[Task[Any]]

    def __init__(
        self,
        config: AVRConfiguration,
        listener: ConnectorListener,
        loop=None,
        parser: Callable[[str], list[tuple[str, Any]]] = parse_telnet_line,
    ):
        self._logger = logging.getLogger(__name__)
        self._hostname = config.host
        self._port = config.telnet_port
        self._zone_count = config.zone_count
        self._listener = listener
        self._loop = loop or asyncio.get_event_loop()
        self._parser = parser

        self._transport = None
        self.peer_name = None
        self._connect_task = None
        self._received_message = ""
        self._consecutive_parse_errors = 0
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def connected(self) -> bool:
        return self._transport is not None and not self._disposed

    def connect(self):
        if self._disposed:
            self._logger.warning("Not connecting, connector has been disposed")
            return
        if self._connect_task is not None:
            return
        self._connect_task = self._loop.create_task(self.async_connect())

    async def async_connect(self):
        self._logger.info(f"Connecting to {self._hostname}:{self._port}")
        try:
            await asyncio.wait_for(
                self._loop.create_connection(lambda: self, host=self._hostname, port=self._port),
                timeout=CONNECT_TIMEOUT,
            )
        except asyncio.TimeoutError:
            self._connection_failed(f"Timeout connecting to {self._hostname}:{self._port}")
        except OSError as e:
            self._connection_failed(f"Error connecting to {self._hostname}:{self._port}: {e}")

    def dispose(self):
        if self._disposed:
            return
        self._disposed = True
        self._logger.debug(f"Disposing telnet connection to {self._hostname}")
        if (
            self._connect_task is not None
            and not self._connect_task.done()
            and self._connect_task is not asyncio.current_task(self._loop)
        ):
            self._connect_task.cancel()
        if self._transport:
            self._transport.close()
            self._transport = None

    def send(self, command: AVRCommand):
        if self._disposed or self._transport is None or self._transport.is_closing():
            raise TransportError(f"Not connected to {self._hostname}")
        message = to_wire(command) + "\r"
        self._logger.debug(f"SEND: {message.encode()}")
        self._transport.write(message.encode())

    def refresh_state(self):
        """Ask the receiver for the status of every configured zone."""
        self._logger.info("Requesting current status")
        for command in refresh_commands(self._zone_count):
            self.send(command)

    def connection_made(self, transport):
        """Method from asyncio.Protocol"""
        if self._disposed:
            # Disposed while the connection was being set up
            transport.close()
            return
        self._transport = transport
        self.peer_name = transport.get_extra_info("peername")
        self._logger.info(f"Connection Made: {self.peer_name}")
        self._listener.connected()
        if not self._disposed:
            self.refresh_state()

    def connection_lost(self, exc):
        """Method from asyncio.Protocol"""
        self._transport = None
        if exc:
            self._connection_failed(f"Connection to {self._hostname} lost: {exc}")
        else:
            self._connection_failed(f"Connection closed by {self._hostname}")

    def data_received(self, data):
        """Method from asyncio.Protocol"""
        if self._disposed:
            return
        self._logger.debug(f"data_received client: {data}")
        self._received_message += data.decode("ascii", errors="ignore")

        # Statuses end with CR, some firmwares add LF
        *lines, self._received_message = re.split(r"[\r\n]", self._received_message)
        for line in lines:
            if self._disposed:
                return
            if line.strip():
                self._process_received_line(line)

    def _process_received_line(self, line: str):
        try:
            updates = self._parser(line)
        except ParseError as e:
            self._consecutive_parse_errors += 1
            self._logger.warning(f"Ignoring malformed message {line!r}: {e}")
            if self._consecutive_parse_errors > MAX_CONSECUTIVE_PARSE_ERRORS:
                self._connection_failed(
                    f"Received {self._consecutive_parse_errors} malformed messages in a row from {self._hostname}"
                )
            return
        self._consecutive_parse_errors = 0
        if not updates:
            self._logger.debug(f"Unhandled message received: {line}")
        for channel, value in updates:
            if self._disposed:
                return
            self._listener.state_changed(channel, value)

    def _connection_failed(self, message: str):
        """Report a failure once and leave the connector disposed."""
        if self._disposed:
            return
        self._logger.error(message)
        self.dispose()
        self._listener.connection_error(message)
