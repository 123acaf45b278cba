"""Exceptions raised by pydenonmarantz."""


class AVRError(Exception):
    """Base exception for receiver errors."""


class ConfigurationError(AVRError):
    """Configuration is invalid (zone count or polling interval)."""


class TransportError(AVRError):
    """A command was sent without a live connection."""


class AVRConnectionError(AVRError):
    """Reading from or polling the receiver failed."""


class UnsupportedCommand(AVRError):
    """Channel, zone or value is not supported for a command."""


class ParseError(AVRError):
    """The receiver sent a payload that could not be parsed."""
