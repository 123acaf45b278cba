"""Typed receiver commands and their wire encoding.

Commands are built through the constructor functions below, which check the
zone against the configured zone count. to_wire() turns a command into the
receiver command string used by both the telnet and the HTTP connectors:

    set_power(True, zone=2, zone_count=2)   -> "Z2ON"
    set_volume(50.5, zone=1, zone_count=1)  -> "MV505"
    set_volume_db(-40, zone=1, zone_count=1) -> "MV40"
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydenonmarantz import channels
from pydenonmarantz.exceptions import UnsupportedCommand

# dB = volume - 80, the receiver reports volume as 0-98 in 0.5 steps
DB_OFFSET = 80
MAX_VOLUME = 98
DEVICE_ZONE = 0


class CommandKind(Enum):
    POWER = "power"
    MUTE = "mute"
    VOLUME = "volume"
    VOLUME_DB = "volume-db"
    INPUT = "input"
    SURROUND_MODE = "mode"
    RAW = "raw-command"


class VolumeStep(Enum):
    UP = "UP"
    DOWN = "DOWN"


class RefreshType(Enum):
    REFRESH = "REFRESH"


REFRESH = RefreshType.REFRESH


@dataclass(frozen=True)
class AVRCommand:
    """A command for one zone. Zone 0 addresses the whole receiver (power only)."""
    kind: CommandKind
    zone: int
    value: Any

    @property
    def is_refresh(self) -> bool:
        return self.value is REFRESH


def _check_zone(zone: int, zone_count: int, allow_device: bool = False):
    if allow_device and zone == DEVICE_ZONE:
        return
    if not (1 <= zone <= zone_count):
        raise UnsupportedCommand(f"Invalid zone {zone}, must be 1-{zone_count}")


def _check_text(value, what: str):
    if not isinstance(value, str) or not value:
        raise UnsupportedCommand(f"Invalid {what} {value!r}, must be a non-empty string")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def set_power(on: bool, zone: int = 1, zone_count: int = 1) -> AVRCommand:
    """Switch a zone on or off. Zone 0 switches the whole receiver."""
    _check_zone(zone, zone_count, allow_device=True)
    return AVRCommand(CommandKind.POWER, zone, bool(on))


def set_mute(on: bool, zone: int = 1, zone_count: int = 1) -> AVRCommand:
    _check_zone(zone, zone_count)
    return AVRCommand(CommandKind.MUTE, zone, bool(on))


def set_volume(percent, zone: int = 1, zone_count: int = 1) -> AVRCommand:
    """Set volume as a percentage (0-100). Values above 98 are capped by the encoder."""
    _check_zone(zone, zone_count)
    if not _is_number(percent) or not (0 <= percent <= 100):
        raise UnsupportedCommand(f"Invalid volume {percent!r}, must be 0-100")
    return AVRCommand(CommandKind.VOLUME, zone, float(percent))


def set_volume_db(db, zone: int = 1, zone_count: int = 1) -> AVRCommand:
    """Set volume in decibels (-80 to +18)."""
    _check_zone(zone, zone_count)
    if not _is_number(db) or not (-DB_OFFSET <= db <= MAX_VOLUME - DB_OFFSET):
        raise UnsupportedCommand(
            f"Invalid volume {db!r}dB, must be {-DB_OFFSET} to {MAX_VOLUME - DB_OFFSET}"
        )
    return AVRCommand(CommandKind.VOLUME_DB, zone, float(db))


def step_volume(step: VolumeStep, zone: int = 1, zone_count: int = 1) -> AVRCommand:
    _check_zone(zone, zone_count)
    if not isinstance(step, VolumeStep):
        raise UnsupportedCommand(f"Invalid volume step {step!r}")
    return AVRCommand(CommandKind.VOLUME, zone, step)


def set_input(source: str, zone: int = 1, zone_count: int = 1) -> AVRCommand:
    _check_zone(zone, zone_count)
    _check_text(source, "input")
    return AVRCommand(CommandKind.INPUT, zone, source)


def set_surround_mode(mode: str, zone: int = 1, zone_count: int = 1) -> AVRCommand:
    """Select a surround program. Only the main zone has one."""
    if zone != 1:
        raise UnsupportedCommand(f"Surround mode is only available in zone 1, not zone {zone}")
    _check_zone(zone, zone_count)
    _check_text(mode, "surround mode")
    return AVRCommand(CommandKind.SURROUND_MODE, zone, mode)


def send_raw(command: str) -> AVRCommand:
    """Pass a receiver command string through unchanged (e.g. "PSDYNEQ ON")."""
    _check_text(command, "command")
    return AVRCommand(CommandKind.RAW, 1, command)


def refresh(kind: CommandKind, zone: int = 1, zone_count: int = 1) -> AVRCommand:
    """Ask the receiver to report the current value of a function."""
    if kind is CommandKind.RAW:
        raise UnsupportedCommand("Raw commands can't be refreshed")
    if kind is CommandKind.SURROUND_MODE and zone != 1:
        raise UnsupportedCommand(f"Surround mode is only available in zone 1, not zone {zone}")
    _check_zone(zone, zone_count, allow_device=kind is CommandKind.POWER)
    return AVRCommand(kind, zone, REFRESH)


def command_for_channel(channel: str, value, zone_count: int) -> AVRCommand:
    """Translate a value sent to a channel into a command.

    Values are bools for power/mute, numbers or a VolumeStep for volume,
    strings for input, mode and raw commands, or REFRESH for any channel.

    Raises:
        UnsupportedCommand: for unknown channels, zones beyond zone_count or
            values the channel can't take
    """
    zone, function = channels.parse_channel(channel)
    if function == channels.DEVICE_POWER:
        zone = DEVICE_ZONE
        function = channels.POWER
    kind = CommandKind(function)

    if value is REFRESH:
        return refresh(kind, zone, zone_count)

    if kind in (CommandKind.POWER, CommandKind.MUTE):
        if not isinstance(value, bool):
            raise UnsupportedCommand(f"Unsupported value {value!r} for channel {channel}")
        if kind is CommandKind.POWER:
            return set_power(value, zone, zone_count)
        return set_mute(value, zone, zone_count)
    if kind in (CommandKind.VOLUME, CommandKind.VOLUME_DB):
        if isinstance(value, VolumeStep):
            return step_volume(value, zone, zone_count)
        if kind is CommandKind.VOLUME:
            return set_volume(value, zone, zone_count)
        return set_volume_db(value, zone, zone_count)
    if kind is CommandKind.INPUT:
        return set_input(value, zone, zone_count)
    if kind is CommandKind.SURROUND_MODE:
        return set_surround_mode(value, zone, zone_count)
    return send_raw(value)


def to_denon_volume(volume: float) -> str:
    """Format a 0-98 volume as the receiver expects it: "05", "50", "505"."""
    rounded = math.floor(volume * 2 + 0.5) / 2
    rounded = min(max(rounded, 0.0), float(MAX_VOLUME))
    whole = int(rounded)
    text = f"{whole:02d}"
    if rounded - whole == 0.5:
        text += "5"
    return text


def _zone_prefix(zone: int) -> str:
    return "" if zone == 1 else f"Z{zone}"


def to_wire(command: AVRCommand) -> str:
    """Receiver command string for a command, without the trailing CR."""
    kind = command.kind
    value = command.value
    zone = command.zone

    if kind is CommandKind.RAW:
        return value

    if kind is CommandKind.POWER:
        if zone == DEVICE_ZONE:
            if command.is_refresh:
                return "PW?"
            return "PWON" if value else "PWSTANDBY"
        prefix = "ZM" if zone == 1 else f"Z{zone}"
        if command.is_refresh:
            return prefix + "?"
        return prefix + ("ON" if value else "OFF")

    if kind is CommandKind.MUTE:
        prefix = _zone_prefix(zone) + "MU"
        if command.is_refresh:
            return prefix + "?"
        return prefix + ("ON" if value else "OFF")

    if kind in (CommandKind.VOLUME, CommandKind.VOLUME_DB):
        prefix = "MV" if zone == 1 else f"Z{zone}"
        if command.is_refresh:
            return prefix + "?"
        if isinstance(value, VolumeStep):
            return prefix + value.value
        if kind is CommandKind.VOLUME_DB:
            value = value + DB_OFFSET
        return prefix + to_denon_volume(value)

    if kind is CommandKind.INPUT:
        prefix = "SI" if zone == 1 else f"Z{zone}"
        if command.is_refresh:
            return prefix + "?"
        return prefix + value

    if kind is CommandKind.SURROUND_MODE:
        if command.is_refresh:
            return "MS?"
        return "MS" + value

    raise UnsupportedCommand(f"Unsupported command {command}")


def refresh_commands(zone_count: int) -> list[AVRCommand]:
    """Queries that make the receiver report every channel of every zone."""
    commands = [
        refresh(CommandKind.POWER, DEVICE_ZONE, zone_count),
        refresh(CommandKind.POWER, 1, zone_count),
        refresh(CommandKind.MUTE, 1, zone_count),
        refresh(CommandKind.VOLUME, 1, zone_count),
        refresh(CommandKind.INPUT, 1, zone_count),
        refresh(CommandKind.SURROUND_MODE, 1, zone_count),
    ]
    # "ZN?" answers power, volume and input of zone N in one go
    for zone in range(2, zone_count + 1):
        commands.append(refresh(CommandKind.POWER, zone, zone_count))
        commands.append(refresh(CommandKind.MUTE, zone, zone_count))
    return commands
