import asyncio
from unittest.mock import Mock, call

import pytest

from pydenonmarantz.commands import set_power
from pydenonmarantz.config import AVRConfiguration
from pydenonmarantz.connector.telnet import MAX_CONSECUTIVE_PARSE_ERRORS, TelnetConnector, parse_telnet_line
from pydenonmarantz.exceptions import ParseError, TransportError


class FakeTransport:
    def __init__(self):
        self.written = []
        self.closed = False

    def get_extra_info(self, name, default=None):
        return ("192.168.1.50", 23)

    def write(self, data):
        self.written.append(data)

    def close(self):
        self.closed = True

    def is_closing(self):
        return self.closed


async def wait_until(predicate, timeout=2.0):
    for _ in range(int(timeout / 0.01)):
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


def make_connector(zone_count=2, port=23):
    config = AVRConfiguration("127.0.0.1", telnet_enabled=True, zone_count=zone_count, telnet_port=port)
    listener = Mock()
    connector = TelnetConnector(config, listener, loop=asyncio.get_running_loop())
    return connector, listener


@pytest.mark.parametrize("line, expected", [
    ("PWON", [("device-power", True)]),
    ("PWSTANDBY", [("device-power", False)]),
    ("ZMON", [("power", True)]),
    ("ZMOFF", [("power", False)]),
    ("MUON", [("mute", True)]),
    ("MUOFF", [("mute", False)]),
    ("MV50", [("volume", 50.0), ("volume-db", -30.0)]),
    ("MV505", [("volume", 50.5), ("volume-db", -29.5)]),
    ("MVMAX 98", []),
    ("SITUNER", [("input", "TUNER")]),
    ("MSSTEREO", [("mode", "STEREO")]),
    ("MSQUICK1", []),
    ("Z2ON", [("zone2#power", True)]),
    ("Z3OFF", [("zone3#power", False)]),
    ("Z2MUON", [("zone2#mute", True)]),
    ("Z4MUOFF", [("zone4#mute", False)]),
    ("Z245", [("zone2#volume", 45.0), ("zone2#volume-db", -35.0)]),
    ("Z2CD", [("zone2#input", "CD")]),
    ("Z2CVFL 50", []),
    ("Z2SLPOFF", []),
    ("PSDYNEQ ON", []),
    ("", []),
])
def test_parse_line(line, expected):
    assert parse_telnet_line(line) == expected


@pytest.mark.parametrize("line", ["MUMAYBE", "PWSLEEP", "MVAB", "MV5"])
def test_parse_malformed_line(line):
    with pytest.raises(ParseError):
        parse_telnet_line(line)


@pytest.mark.asyncio
async def test_connection_made_requests_full_status():
    connector, listener = make_connector(zone_count=2)
    transport = FakeTransport()

    connector.connection_made(transport)

    listener.connected.assert_called_once()
    assert connector.connected
    assert transport.written == [
        b"PW?\r", b"ZM?\r", b"MU?\r", b"MV?\r", b"SI?\r", b"MS?\r", b"Z2?\r", b"Z2MU?\r",
    ]


@pytest.mark.asyncio
async def test_data_received_reports_each_line():
    connector, listener = make_connector()
    connector.connection_made(FakeTransport())

    connector.data_received(b"PWON\rMV505\r\nZ2TUNER\r")

    assert listener.state_changed.call_args_list == [
        call("device-power", True),
        call("volume", 50.5),
        call("volume-db", -29.5),
        call("zone2#input", "TUNER"),
    ]


@pytest.mark.asyncio
async def test_line_split_over_packets():
    connector, listener = make_connector()
    connector.connection_made(FakeTransport())

    connector.data_received(b"MV4")
    listener.state_changed.assert_not_called()
    connector.data_received(b"0\rSI")
    listener.state_changed.assert_has_calls([call("volume", 40.0), call("volume-db", -40.0)])
    connector.data_received(b"CD\r")
    listener.state_changed.assert_called_with("input", "CD")


@pytest.mark.asyncio
async def test_send_writes_command_with_cr():
    connector, _ = make_connector()
    transport = FakeTransport()
    connector.connection_made(transport)
    transport.written.clear()

    connector.send(set_power(True, zone=2, zone_count=2))

    assert transport.written == [b"Z2ON\r"]


@pytest.mark.asyncio
async def test_send_without_connection_fails():
    connector, _ = make_connector()
    with pytest.raises(TransportError):
        connector.send(set_power(True))


@pytest.mark.asyncio
async def test_connection_lost_reports_one_error():
    connector, listener = make_connector()
    connector.connection_made(FakeTransport())

    connector.connection_lost(ConnectionResetError("reset"))
    connector.connection_lost(None)

    listener.connection_error.assert_called_once()
    assert connector.disposed
    with pytest.raises(TransportError):
        connector.send(set_power(True))


@pytest.mark.asyncio
async def test_no_callbacks_after_dispose():
    connector, listener = make_connector()
    transport = FakeTransport()
    connector.connection_made(transport)

    connector.dispose()
    connector.dispose()
    connector.data_received(b"PWON\r")
    connector.connection_lost(None)

    assert transport.closed
    listener.state_changed.assert_not_called()
    listener.connection_error.assert_not_called()


@pytest.mark.asyncio
async def test_connection_made_after_dispose_closes_transport():
    connector, listener = make_connector()
    connector.dispose()
    transport = FakeTransport()

    connector.connection_made(transport)

    assert transport.closed
    listener.connected.assert_not_called()


@pytest.mark.asyncio
async def test_malformed_lines_are_skipped():
    connector, listener = make_connector()
    connector.connection_made(FakeTransport())

    connector.data_received(b"MUXX\r" * MAX_CONSECUTIVE_PARSE_ERRORS + b"MUON\r")
    connector.data_received(b"MUXX\r" * MAX_CONSECUTIVE_PARSE_ERRORS)

    listener.connection_error.assert_not_called()
    listener.state_changed.assert_called_once_with("mute", True)


@pytest.mark.asyncio
async def test_too_many_malformed_lines_is_a_connection_error():
    connector, listener = make_connector()
    connector.connection_made(FakeTransport())

    connector.data_received(b"MUXX\r" * (MAX_CONSECUTIVE_PARSE_ERRORS + 5))

    listener.connection_error.assert_called_once()
    assert connector.disposed


@pytest.mark.asyncio
async def test_connects_to_receiver():
    requests = asyncio.Queue()

    async def receiver(reader, writer):
        await requests.put(await reader.readuntil(b"\r"))
        writer.write(b"PWON\rZMON\r")
        await writer.drain()
        await reader.read()
        writer.close()

    server = await asyncio.start_server(receiver, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    connector, listener = make_connector(zone_count=1, port=port)
    try:
        connector.connect()
        assert await asyncio.wait_for(requests.get(), 2) == b"PW?\r"
        assert await wait_until(lambda: listener.state_changed.call_count == 2)
        listener.connected.assert_called_once()
        listener.state_changed.assert_has_calls([call("device-power", True), call("power", True)])
    finally:
        connector.dispose()
        server.close()
        await server.wait_closed()
    listener.connection_error.assert_not_called()


@pytest.mark.asyncio
async def test_connection_refused_reports_one_error():
    server = await asyncio.start_server(lambda reader, writer: None, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()

    connector, listener = make_connector(port=port)
    connector.connect()

    assert await wait_until(lambda: listener.connection_error.called)
    listener.connection_error.assert_called_once()
    listener.connected.assert_not_called()
    assert connector.disposed
