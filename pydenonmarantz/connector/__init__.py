"""Connections to the receiver: a persistent telnet stream or HTTP status polling."""

from pydenonmarantz.connector.base import AVRConnector
from pydenonmarantz.connector.factory import create_connector
from pydenonmarantz.connector.http import HttpConnector, parse_status_document
from pydenonmarantz.connector.telnet import TelnetConnector, parse_telnet_line

__all__ = [
    "AVRConnector",
    "HttpConnector",
    "TelnetConnector",
    "create_connector",
    "parse_status_document",
    "parse_telnet_line",
]
