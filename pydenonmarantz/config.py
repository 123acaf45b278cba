from dataclasses import dataclass, replace

from pydenonmarantz.exceptions import ConfigurationError

DEFAULT_TELNET_PORT = 23
DEFAULT_HTTP_PORT = 80
DEFAULT_HTTP_TIMEOUT = 5.0
MIN_POLLING_INTERVAL = 5
MIN_ZONE_COUNT = 1
MAX_ZONE_COUNT = 4


@dataclass(frozen=True)
class AVRConfiguration:
    """Settings for one receiver session.

    Args:
        host: Receiver hostname or IP
        telnet_enabled: Use the telnet connection instead of HTTP polling
        http_polling_interval: Seconds between HTTP status polls (>= 5)
        zone_count: Number of zones to control (1-4)
        telnet_port: Telnet control port (usually 23)
        http_port: Web interface port (usually 80)
        http_timeout: Seconds before an HTTP request is considered failed
    """
    host: str
    telnet_enabled: bool = False
    http_polling_interval: int = MIN_POLLING_INTERVAL
    zone_count: int = 2
    telnet_port: int = DEFAULT_TELNET_PORT
    http_port: int = DEFAULT_HTTP_PORT
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    def validate(self):
        """Raise ConfigurationError if the settings can't be used."""
        if self.http_polling_interval < MIN_POLLING_INTERVAL:
            raise ConfigurationError(
                f"The polling interval should be at least {MIN_POLLING_INTERVAL} seconds!"
            )
        if not (MIN_ZONE_COUNT <= self.zone_count <= MAX_ZONE_COUNT):
            raise ConfigurationError(
                f"This library supports {MIN_ZONE_COUNT} to {MAX_ZONE_COUNT} zones. "
                f"Please update the zone count."
            )

    def only_zone_count_differs(self, other: "AVRConfiguration") -> bool:
        """Whether other is this configuration with just a different zone count."""
        return (
            self.zone_count != other.zone_count
            and replace(other, zone_count=self.zone_count) == self
        )
