"""pydenonmarantz Python Package

Python library for controlling Denon and Marantz AV receivers.
"""

from pydenonmarantz.config import AVRConfiguration
from pydenonmarantz.handler import AVRHandler, HandlerState
from pydenonmarantz.listener import AVRHostListener, Availability, StatusDetail

__all__ = ["AVRConfiguration", "AVRHandler", "AVRHostListener", "Availability", "HandlerState", "StatusDetail"]
