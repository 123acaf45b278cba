from typing import Optional

import aiohttp

from pydenonmarantz.config import AVRConfiguration
from pydenonmarantz.connector.base import AVRConnector
from pydenonmarantz.connector.http import HttpConnector
from pydenonmarantz.connector.telnet import TelnetConnector
from pydenonmarantz.listener import ConnectorListener
from pydenonmarantz.state import StateStore


def create_connector(
    config: AVRConfiguration,
    state: StateStore,
    listener: ConnectorListener,
    loop=None,
    session: Optional[aiohttp.ClientSession] = None,
) -> AVRConnector:
    """Build the connector the configuration asks for, without connecting it."""
    if config.telnet_enabled:
        return TelnetConnector(config, listener, loop=loop)
    return HttpConnector(config, state, listener, loop=loop, session=session)
