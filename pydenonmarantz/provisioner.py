"""Keeps the set of zone channels in line with the configured zone count."""

import logging

from pydenonmarantz.channels import ZONE_CHANNEL_TEMPLATES, zone_of
from pydenonmarantz.config import MAX_ZONE_COUNT, MIN_ZONE_COUNT
from pydenonmarantz.exceptions import ConfigurationError

_LOGGER = logging.getLogger(__name__)


def configured_zone_count(channels: list[str]) -> int:
    """Highest zone that has channels, 1 when only main zone channels exist."""
    zones = [zone for zone in (zone_of(channel) for channel in channels) if zone is not None]
    return max(zones, default=1)


def provision_zone_channels(channels: list[str], zone_count: int) -> list[str]:
    """Return the channel list for zone_count zones.

    Zones above the current highest zone are appended in ascending order,
    each with its channels in template order. Zones above zone_count are
    removed without reordering the remaining channels. Returns an equal list
    when nothing needs to change.
    """
    if not (MIN_ZONE_COUNT <= zone_count <= MAX_ZONE_COUNT):
        raise ConfigurationError(
            f"This library supports {MIN_ZONE_COUNT} to {MAX_ZONE_COUNT} zones. "
            f"Please update the zone count."
        )
    current = configured_zone_count(channels)
    _LOGGER.debug(
        f"Currently {current} zones configured, with {zone_count} zones in the configuration."
    )

    if zone_count == current:
        _LOGGER.debug("No zone channel changes have been detected.")
        return list(channels)

    if zone_count > current:
        result = list(channels)
        for zone in range(current + 1, zone_count + 1):
            _LOGGER.debug(f"Adding zone {zone}")
            for template in ZONE_CHANNEL_TEMPLATES:
                channel = template.replace("?", str(zone))
                if channel not in result:
                    _LOGGER.debug(f"Adding channel {channel}")
                    result.append(channel)
        return result

    result = []
    for channel in channels:
        zone = zone_of(channel)
        if zone is not None and zone > zone_count:
            _LOGGER.debug(f"Removing channel {channel}")
            continue
        result.append(channel)
    return result
