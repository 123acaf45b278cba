"""
Main command-line interface for pydenonmarantz.

This script provides a CLI to interact with Denon and Marantz AV receivers.
"""

import argparse
import asyncio
import logging
from typing import Optional

from pydenonmarantz import channels
from pydenonmarantz.commands import VolumeStep
from pydenonmarantz.config import AVRConfiguration
from pydenonmarantz.handler import AVRHandler, HandlerState
from pydenonmarantz.listener import LoggingListener


async def connect(config: AVRConfiguration) -> AVRHandler:
    """Start a handler and wait until the receiver is online."""
    print(f"Connecting to receiver at {config.host} ({'telnet' if config.telnet_enabled else 'HTTP'})...")

    handler = AVRHandler(config, LoggingListener())
    handler.start()

    # Wait for the first status to arrive
    for _ in range(50):
        if handler.state is HandlerState.ONLINE:
            break
        await asyncio.sleep(0.1)
    return handler


async def show_status(config: AVRConfiguration):
    """Query and display the status of all zones."""
    handler = await connect(config)
    if handler.state is not HandlerState.ONLINE:
        print("Receiver did not respond")
        await handler.async_stop()
        return

    # Give the receiver time to answer all status queries
    await asyncio.sleep(2)

    print("\nReceiver Status:")
    print("-" * 60)
    print(f"{'Receiver power:':20s} {'ON' if handler.store.get_state(channels.DEVICE_POWER) else 'STANDBY'}")
    mode = handler.store.get_state(channels.MODE)
    print(f"{'Surround mode:':20s} {mode or 'unknown'}")

    for zone in range(1, config.zone_count + 1):
        power = handler.store.get_state(channels.zone_channel(zone, channels.POWER))
        volume_db = handler.store.get_state(channels.zone_channel(zone, channels.VOLUME_DB))
        muted = handler.store.get_state(channels.zone_channel(zone, channels.MUTE))
        source = handler.store.get_state(channels.zone_channel(zone, channels.INPUT))

        if muted:
            volume_str = "MUTE"
        elif volume_db is not None:
            volume_str = f"{volume_db:.1f}dB"
        else:
            volume_str = "unknown"

        zone_label = f"Zone {zone}:"
        print(f"{zone_label:20s} {'ON ' if power else 'OFF'} | Vol: {volume_str:10s} | Input: {source or 'unknown'}")
    print("-" * 60)

    await handler.async_stop()


async def send_command(config: AVRConfiguration, channel: str, value):
    """Send a single value to a channel."""
    handler = await connect(config)

    print(f"Setting {channel} to {value}...")
    if not handler.handle_command(channel, value):
        print(f"Error: command not sent to {config.host}")
    else:
        # Wait for command to be processed and sent
        await asyncio.sleep(1)
        print("Done")

    await handler.async_stop()


def parse_volume(level: Optional[str], db: Optional[float] = None):
    """Turn a level (0-98, 'up' or 'down') or a dB value into a channel function and command value.

    Raises:
        ValueError: if the level is not a number, 'up' or 'down'
    """
    if db is not None:
        return channels.VOLUME_DB, float(db)
    text = level.strip().lower()
    if text in ("up", "down"):
        return channels.VOLUME, VolumeStep(text.upper())
    return channels.VOLUME, float(text)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Control Denon and Marantz AV receivers")
    parser.add_argument("--host", default="192.168.1.50", help="Receiver hostname or IP (default: 192.168.1.50)")
    parser.add_argument("--telnet", action="store_true", help="Use the telnet connection instead of HTTP polling")
    parser.add_argument("--interval", type=int, default=5, help="HTTP polling interval in seconds (default: 5)")
    parser.add_argument("--zones", type=int, default=2, help="Number of zones (1-4, default: 2)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Status command
    subparsers.add_parser("status", help="Show status of all zones")

    # Power command
    power_parser = subparsers.add_parser("power", help="Switch a zone on or off")
    power_parser.add_argument("state", choices=["on", "off"], help="Power state")
    power_parser.add_argument("--zone", type=int, default=1, help="Zone (1-4), 0 for the whole receiver")

    # Volume command
    volume_parser = subparsers.add_parser("volume", help="Set volume level for a zone")
    volume_level = volume_parser.add_mutually_exclusive_group(required=True)
    volume_level.add_argument("level", nargs="?", help="Volume 0-98, 'up' or 'down'")
    # Negative numbers are fine as option values, not as positionals
    volume_level.add_argument("--db", type=float, help="Volume in dB (-80 to 18), e.g. --db -30")
    volume_parser.add_argument("--zone", type=int, default=1, help="Zone (1-4)")

    # Mute command
    mute_parser = subparsers.add_parser("mute", help="Mute or unmute a zone")
    mute_parser.add_argument("state", choices=["on", "off"], help="Mute state")
    mute_parser.add_argument("--zone", type=int, default=1, help="Zone (1-4)")

    # Input command
    input_parser = subparsers.add_parser("input", help="Select the input of a zone")
    input_parser.add_argument("source", help="Input name, e.g. TUNER, CD, GAME")
    input_parser.add_argument("--zone", type=int, default=1, help="Zone (1-4)")

    # Surround mode command
    mode_parser = subparsers.add_parser("mode", help="Select the surround mode of the main zone")
    mode_parser.add_argument("mode", help="Surround mode, e.g. STEREO, MOVIE")

    # Raw command
    raw_parser = subparsers.add_parser("raw", help="Send a receiver command unchanged")
    raw_parser.add_argument("raw", help="Command, e.g. 'PSDYNEQ ON'")

    return parser


def main(argv: Optional[list[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)

    config = AVRConfiguration(
        args.host,
        telnet_enabled=args.telnet,
        http_polling_interval=args.interval,
        zone_count=args.zones,
    )

    if args.command == "status":
        asyncio.run(show_status(config))
    elif args.command == "power":
        channel = channels.DEVICE_POWER if args.zone == 0 else channels.zone_channel(args.zone, channels.POWER)
        asyncio.run(send_command(config, channel, args.state == "on"))
    elif args.command == "volume":
        try:
            function, value = parse_volume(args.level, args.db)
        except ValueError:
            print(f"Error: Invalid level '{args.level}'. Use 0-98, 'up', 'down' or --db")
            return
        asyncio.run(send_command(config, channels.zone_channel(args.zone, function), value))
    elif args.command == "mute":
        asyncio.run(send_command(config, channels.zone_channel(args.zone, channels.MUTE), args.state == "on"))
    elif args.command == "input":
        asyncio.run(send_command(config, channels.zone_channel(args.zone, channels.INPUT), args.source))
    elif args.command == "mode":
        asyncio.run(send_command(config, channels.MODE, args.mode))
    elif args.command == "raw":
        asyncio.run(send_command(config, channels.RAW_COMMAND, args.raw))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
