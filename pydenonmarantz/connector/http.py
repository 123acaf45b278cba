import asyncio
import logging
from asyncio import Task
from typing import Any, Callable, Optional
from urllib.parse import quote
from xml.parsers.expat import ExpatError

import aiohttp
import xmltodict

from pydenonmarantz import channels
from pydenonmarantz.commands import AVRCommand, DB_OFFSET, to_wire
from pydenonmarantz.config import AVRConfiguration
from pydenonmarantz.connector.base import AVRConnector
from pydenonmarantz.exceptions import AVRConnectionError, ParseError, TransportError
from pydenonmarantz.listener import ConnectorListener
from pydenonmarantz.state import StateStore

MAIN_ZONE_STATUS_PATH = "/goform/formMainZone_MainZoneXml.xml"
ZONE_STATUS_PATH = "/goform/formZone{zone}_Zone{zone}XmlStatusLite.xml"
COMMAND_PATH = "/goform/formiPhoneAppDirect.xml"

# Status documents look like:
# <item>
#   <Power><value>ON</value></Power>              receiver power (zone 2-4 pages: zone power)
#   <ZonePower><value>ON</value></ZonePower>      main zone power
#   <InputFuncSelect><value>TUNER</value></InputFuncSelect>
#   <MasterVolume><value>-40.0</value></MasterVolume>   dB, "--" at minimum
#   <Mute><value>off</value></Mute>
#   <selectSurround><value>STEREO </value></selectSurround>
# </item>


def _element_value(item: dict, name: str) -> Optional[str]:
    element = item.get(name)
    if isinstance(element, dict):
        element = element.get("value")
    if isinstance(element, list):
        element = element[0] if element else None
    if element is None:
        return None
    return str(element).strip()


def parse_status_document(document: dict, zone: int) -> dict[str, Any]:
    """Map a parsed status document of one zone to channel values.

    Raises:
        ParseError: if the document isn't a status document or has a bad volume
    """
    item = document.get("item") if isinstance(document, dict) else None
    if not isinstance(item, dict):
        raise ParseError(f"Status document for zone {zone} has no <item> element")

    state: dict[str, Any] = {}
    if zone == 1:
        device_power = _element_value(item, "Power")
        if device_power:
            state[channels.DEVICE_POWER] = device_power.upper() == "ON"
        zone_power = _element_value(item, "ZonePower")
    else:
        zone_power = _element_value(item, "Power")
    if zone_power:
        state[channels.zone_channel(zone, channels.POWER)] = zone_power.upper() == "ON"

    source = _element_value(item, "InputFuncSelect")
    if source:
        state[channels.zone_channel(zone, channels.INPUT)] = source

    volume = _element_value(item, "MasterVolume")
    if volume:
        if volume == "--":
            volume_db = float(-DB_OFFSET)
        else:
            try:
                volume_db = float(volume)
            except ValueError:
                raise ParseError(f"Invalid volume {volume!r} for zone {zone}") from None
        state[channels.zone_channel(zone, channels.VOLUME)] = volume_db + DB_OFFSET
        state[channels.zone_channel(zone, channels.VOLUME_DB)] = volume_db

    mute = _element_value(item, "Mute")
    if mute:
        state[channels.zone_channel(zone, channels.MUTE)] = mute.lower() == "on"

    if zone == 1:
        surround = _element_value(item, "selectSurround")
        if surround:
            state[channels.MODE] = surround
    return state


class HttpConnector(AVRConnector):
    """Polls the receiver's status pages and reports the channels that changed.

    Every sweep fetches the main zone page and one page per extra zone. The
    first successful sweep counts as connected, any failed request ends
    polling with a single connection_error().
    """

    online_on_connect = True
    # Each sweep reads everything, single channel refreshes are skipped
    supports_refresh = False

    _poll_task: Optional[Task[Any]]

    def __init__(
        self,
        config: AVRConfiguration,
        state: StateStore,
        listener: ConnectorListener,
        loop=None,
        session: Optional[aiohttp.ClientSession] = None,
        parser: Callable[[dict, int], dict[str, Any]] = parse_status_document,
    ):
        self._logger = logging.getLogger(__name__)
        self._hostname = config.host
        self._base_url = f"http://{config.host}:{config.http_port}"
        self._polling_interval = config.http_polling_interval
        self._zone_count = config.zone_count
        self._timeout = aiohttp.ClientTimeout(total=config.http_timeout)
        self._state = state
        self._listener = listener
        self._loop = loop or asyncio.get_event_loop()
        self._parser = parser

        self._session = session
        self._owns_session = session is None
        self._poll_task = None
        self._send_tasks: set[Task[Any]] = set()
        self._close_task: Optional[Task[Any]] = None
        # Values of the last successful sweep, also for channels the owner doesn't store
        self._last_reported: dict[str, Any] = {}
        self._connected_reported = False
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def connect(self):
        if self._disposed:
            self._logger.warning("Not polling, connector has been disposed")
            return
        if self._poll_task is not None:
            return
        self._logger.info(f"Polling {self._base_url} every {self._polling_interval} seconds")
        self._poll_task = self._loop.create_task(self._poll_worker())

    def dispose(self):
        if self._disposed:
            return
        self._disposed = True
        self._logger.debug(f"Disposing HTTP connection to {self._hostname}")
        current = asyncio.current_task(self._loop)
        if self._poll_task is not None and not self._poll_task.done() and self._poll_task is not current:
            self._poll_task.cancel()
        for task in list(self._send_tasks):
            if not task.done() and task is not current:
                task.cancel()
        if self._owns_session and self._session is not None and not self._session.closed:
            self._close_task = self._loop.create_task(self._session.close())

    async def async_close(self):
        """Dispose and wait until an owned HTTP session is closed."""
        self.dispose()
        if self._close_task is not None:
            await self._close_task

    def send(self, command: AVRCommand):
        if self._disposed or self._poll_task is None:
            raise TransportError(f"Not connected to {self._hostname}")
        if command.is_refresh:
            # Refreshing individual channels isn't supported over HTTP.
            # The poller refreshes all channels together at the polling interval.
            return
        message = to_wire(command)
        task = self._loop.create_task(self._async_send(message))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)

    async def _async_send(self, message: str):
        url = f"{self._base_url}{COMMAND_PATH}?{quote(message)}"
        self._logger.debug(f"SEND: {url}")
        try:
            async with self._get_session().get(url, timeout=self._timeout) as response:
                if not 200 <= response.status < 300:
                    self._logger.warning(f"Command {message} returned status {response.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            # Polling notices a receiver that went away, a lost command is only logged
            self._logger.warning(f"Error sending command {message}: {e}")

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    def _status_path(self, zone: int) -> str:
        if zone == 1:
            return MAIN_ZONE_STATUS_PATH
        return ZONE_STATUS_PATH.format(zone=zone)

    async def _fetch_document(self, path: str) -> dict:
        async with self._get_session().get(self._base_url + path, timeout=self._timeout) as response:
            if not 200 <= response.status < 300:
                raise AVRConnectionError(f"Status {response.status} from {self._base_url}{path}")
            body = await response.text()
        return xmltodict.parse(body)

    async def _poll_worker(self):
        """Poll right away, then every polling interval until a poll fails."""
        try:
            while not self._disposed:
                if not await self.async_poll():
                    return
                await asyncio.sleep(self._polling_interval)
        except asyncio.CancelledError:
            self._logger.debug("Polling task cancelled")

    async def async_poll(self) -> bool:
        """Read the full receiver state once.

        Returns False when the poll failed (connection_error() has been
        delivered) or the connector was disposed meanwhile.
        """
        if self._disposed:
            return False
        updates: dict[str, Any] = {}
        try:
            for zone in range(1, self._zone_count + 1):
                document = await self._fetch_document(self._status_path(zone))
                if self._disposed:
                    return False
                updates.update(self._parser(document, zone))
        except asyncio.TimeoutError:
            return self._poll_failed(f"Timeout polling {self._base_url}")
        except AVRConnectionError as e:
            return self._poll_failed(str(e))
        except aiohttp.ClientError as e:
            return self._poll_failed(f"Error polling {self._base_url}: {e}")
        except (ExpatError, ParseError) as e:
            return self._poll_failed(f"Malformed status from {self._base_url}: {e}")

        if self._disposed:
            return False
        if not self._connected_reported:
            self._connected_reported = True
            self._listener.connected()

        for channel, value in updates.items():
            if self._disposed:
                return False
            unchanged = (
                (channel in self._last_reported and self._last_reported[channel] == value)
                or (channel in self._state and self._state.get(channel) == value)
            )
            self._last_reported[channel] = value
            if unchanged:
                continue
            self._listener.state_changed(channel, value)
        return True

    def _poll_failed(self, message: str) -> bool:
        if not self._disposed:
            self._logger.error(message)
            self.dispose()
            self._listener.connection_error(message)
        return False
