"""Channel keys for the receiver.

A channel key is a function suffix with an optional zone prefix. Zone 1
channels have no prefix ("power"), zones 2-4 use "zoneN#" ("zone2#power").
"""

import re
from typing import Optional

from pydenonmarantz.exceptions import UnsupportedCommand

POWER = "power"
MUTE = "mute"
VOLUME = "volume"
VOLUME_DB = "volume-db"
INPUT = "input"
MODE = "mode"
RAW_COMMAND = "raw-command"
# Whole receiver power (PW), as opposed to the main zone power (ZM)
DEVICE_POWER = "device-power"

MAIN_ZONE_CHANNELS = [
    DEVICE_POWER,
    POWER,
    MUTE,
    VOLUME,
    VOLUME_DB,
    INPUT,
    MODE,
    RAW_COMMAND,
]

# Templates for zones 2-4, "?" is replaced with the zone number.
# Order here is the order channels are added in.
ZONE_CHANNEL_TEMPLATES = [
    "zone?#" + POWER,
    "zone?#" + MUTE,
    "zone?#" + VOLUME,
    "zone?#" + VOLUME_DB,
    "zone?#" + INPUT,
]

ZONE_PREFIX_PATTERN = re.compile(r"^zone([2-4])#(.+)$")
ZONE_FUNCTIONS = {POWER, MUTE, VOLUME, VOLUME_DB, INPUT}


def zone_channel(zone: int, function: str) -> str:
    """Build the channel key for a function in a zone."""
    if zone <= 1:
        return function
    return f"zone{zone}#{function}"


def zone_channels(zone: int) -> list[str]:
    """All channel keys a zone owns, in declaration order."""
    if zone == 1:
        return list(MAIN_ZONE_CHANNELS)
    return [template.replace("?", str(zone)) for template in ZONE_CHANNEL_TEMPLATES]


def zone_of(channel: str) -> Optional[int]:
    """Zone number encoded in a channel key prefix, or None for zone 1."""
    match = ZONE_PREFIX_PATTERN.match(channel)
    if match:
        return int(match.group(1))
    return None


def parse_channel(channel: str) -> tuple[int, str]:
    """Split a channel key into (zone, function).

    The device-power channel belongs to zone 1 since it is always present.

    Raises:
        UnsupportedCommand: if the key is not a known channel
    """
    match = ZONE_PREFIX_PATTERN.match(channel)
    if match:
        zone = int(match.group(1))
        function = match.group(2)
        if function not in ZONE_FUNCTIONS:
            raise UnsupportedCommand(f"Unknown channel {channel}")
        return zone, function
    if channel not in MAIN_ZONE_CHANNELS:
        raise UnsupportedCommand(f"Unknown channel {channel}")
    return 1, channel
