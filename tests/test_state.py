import logging
from unittest.mock import Mock

from pydenonmarantz.state import StateStore, default_value


def test_apply_reports_only_changes():
    on_change = Mock()
    store = StateStore(on_change=on_change)

    assert store.apply("volume", 40.0)
    assert not store.apply("volume", 40.0)
    assert store.apply("volume", 41.5)

    assert on_change.call_count == 2
    on_change.assert_called_with("volume", 41.5)
    assert store.get("volume") == 41.5


def test_first_value_is_a_change_even_if_it_equals_the_default():
    on_change = Mock()
    store = StateStore(on_change=on_change)
    assert store.apply("power", False)
    on_change.assert_called_once_with("power", False)


def test_defaults():
    assert default_value("power") is False
    assert default_value("device-power") is False
    assert default_value("zone3#power") is False
    assert default_value("volume") is None
    assert default_value("zone2#input") is None
    assert default_value("no-such-channel") is None


def test_get_state_falls_back_to_default():
    store = StateStore()
    assert store.get("power") is None
    assert store.get_state("power") is False
    store.apply("power", True)
    assert store.get_state("power") is True


def test_remove_and_clear():
    store = StateStore()
    store.apply("power", True)
    store.apply("zone3#volume", 20.0)
    store.apply("zone4#input", "CD")

    store.remove(["zone3#volume", "zone4#input", "zone4#mute"])
    assert "zone3#volume" not in store
    assert store.snapshot() == {"power": True}

    store.clear()
    assert len(store) == 0


def test_changes_are_logged(caplog):
    store = StateStore()
    with caplog.at_level(logging.DEBUG, logger="pydenonmarantz.state"):
        store.apply("input", "TUNER")
        store.apply("input", "TUNER")
    assert [record.getMessage() for record in caplog.records] == ["State input = TUNER"]
