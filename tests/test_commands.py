import pytest

from pydenonmarantz import commands
from pydenonmarantz.commands import (
    REFRESH,
    AVRCommand,
    CommandKind,
    VolumeStep,
    command_for_channel,
    refresh,
    refresh_commands,
    to_denon_volume,
    to_wire,
)
from pydenonmarantz.exceptions import UnsupportedCommand


@pytest.mark.parametrize("command, wire", [
    (commands.set_power(True, zone=0), "PWON"),
    (commands.set_power(False, zone=0), "PWSTANDBY"),
    (commands.set_power(True), "ZMON"),
    (commands.set_power(False), "ZMOFF"),
    (commands.set_power(True, zone=2, zone_count=2), "Z2ON"),
    (commands.set_power(False, zone=4, zone_count=4), "Z4OFF"),
    (commands.set_mute(True), "MUON"),
    (commands.set_mute(False, zone=3, zone_count=3), "Z3MUOFF"),
    (commands.set_volume(50), "MV50"),
    (commands.set_volume(50.5), "MV505"),
    (commands.set_volume(5), "MV05"),
    (commands.set_volume(45.5, zone=2, zone_count=2), "Z2455"),
    (commands.set_volume_db(-40), "MV40"),
    (commands.set_volume_db(-29.5), "MV505"),
    (commands.step_volume(VolumeStep.UP), "MVUP"),
    (commands.step_volume(VolumeStep.DOWN, zone=2, zone_count=2), "Z2DOWN"),
    (commands.set_input("TUNER"), "SITUNER"),
    (commands.set_input("CD", zone=3, zone_count=3), "Z3CD"),
    (commands.set_surround_mode("STEREO"), "MSSTEREO"),
    (commands.send_raw("PSDYNEQ ON"), "PSDYNEQ ON"),
])
def test_wire_encoding(command, wire):
    assert to_wire(command) == wire


@pytest.mark.parametrize("command, wire", [
    (refresh(CommandKind.POWER, zone=0), "PW?"),
    (refresh(CommandKind.POWER), "ZM?"),
    (refresh(CommandKind.POWER, zone=2, zone_count=2), "Z2?"),
    (refresh(CommandKind.MUTE), "MU?"),
    (refresh(CommandKind.MUTE, zone=2, zone_count=2), "Z2MU?"),
    (refresh(CommandKind.VOLUME), "MV?"),
    (refresh(CommandKind.VOLUME_DB), "MV?"),
    (refresh(CommandKind.INPUT), "SI?"),
    (refresh(CommandKind.SURROUND_MODE), "MS?"),
])
def test_refresh_encoding(command, wire):
    assert command.is_refresh
    assert to_wire(command) == wire


@pytest.mark.parametrize("volume, text", [
    (0, "00"),
    (0.2, "00"),
    (50.2, "50"),
    (50.3, "505"),
    (50.75, "51"),
    (98, "98"),
    (100, "98"),
    (-3, "00"),
])
def test_volume_rounds_to_half_steps_and_clamps(volume, text):
    assert to_denon_volume(volume) == text


@pytest.mark.parametrize("build", [
    lambda: commands.set_power(True, zone=3, zone_count=2),
    lambda: commands.set_mute(True, zone=0, zone_count=2),
    lambda: commands.set_volume(101),
    lambda: commands.set_volume(-1),
    lambda: commands.set_volume(True),
    lambda: commands.set_volume("50"),
    lambda: commands.set_volume_db(19),
    lambda: commands.set_volume_db(-81),
    lambda: commands.set_input(""),
    lambda: commands.set_surround_mode("STEREO", zone=2, zone_count=2),
    lambda: commands.send_raw(""),
    lambda: refresh(CommandKind.RAW),
    lambda: refresh(CommandKind.SURROUND_MODE, zone=2, zone_count=2),
])
def test_invalid_commands_are_rejected(build):
    with pytest.raises(UnsupportedCommand):
        build()


@pytest.mark.parametrize("channel, value, zone_count, wire", [
    ("device-power", True, 1, "PWON"),
    ("device-power", False, 1, "PWSTANDBY"),
    ("power", True, 1, "ZMON"),
    ("zone2#power", True, 2, "Z2ON"),
    ("mute", False, 1, "MUOFF"),
    ("zone2#mute", True, 2, "Z2MUON"),
    ("volume", 40, 1, "MV40"),
    ("volume", VolumeStep.DOWN, 1, "MVDOWN"),
    ("volume-db", -30.5, 1, "MV495"),
    ("zone3#volume-db", VolumeStep.UP, 3, "Z3UP"),
    ("input", "GAME", 1, "SIGAME"),
    ("zone4#input", "NET", 4, "Z4NET"),
    ("mode", "MOVIE", 1, "MSMOVIE"),
    ("raw-command", "PSDYNEQ ON", 1, "PSDYNEQ ON"),
    ("input", REFRESH, 1, "SI?"),
    ("zone2#power", REFRESH, 2, "Z2?"),
    ("device-power", REFRESH, 1, "PW?"),
])
def test_command_for_channel(channel, value, zone_count, wire):
    assert to_wire(command_for_channel(channel, value, zone_count)) == wire


@pytest.mark.parametrize("channel, value, zone_count", [
    ("zone3#power", True, 2),
    ("zone2#mode", "STEREO", 2),
    ("no-such-channel", True, 1),
    ("mute", "yes", 1),
    ("power", 1, 1),
    ("input", 5, 1),
    ("raw-command", REFRESH, 1),
])
def test_command_for_channel_rejects(channel, value, zone_count):
    with pytest.raises(UnsupportedCommand):
        command_for_channel(channel, value, zone_count)


def test_device_power_addresses_the_receiver():
    command = command_for_channel("device-power", True, 2)
    assert command == AVRCommand(CommandKind.POWER, commands.DEVICE_ZONE, True)


def test_refresh_commands_cover_every_zone():
    wires = [to_wire(command) for command in refresh_commands(3)]
    assert wires == ["PW?", "ZM?", "MU?", "MV?", "SI?", "MS?", "Z2?", "Z2MU?", "Z3?", "Z3MU?"]


def test_refresh_commands_single_zone():
    wires = [to_wire(command) for command in refresh_commands(1)]
    assert wires == ["PW?", "ZM?", "MU?", "MV?", "SI?", "MS?"]
