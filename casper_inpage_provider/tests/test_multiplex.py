import logging

import pytest

from casper_inpage_provider.core.multiplex import ObjectMultiplex
from casper_inpage_provider.core.streams import duplex_pair, pump


def _wire():
    local, remote = duplex_pair()
    mux = ObjectMultiplex()
    pump(local, mux, local)
    outbound = []
    remote.on("data", outbound.append)
    return mux, remote, outbound


def test_frames_are_tagged_and_routed_by_channel() -> None:
    mux, remote, outbound = _wire()
    provider = mux.create_stream("provider")
    received = []
    provider.on("data", received.append)

    provider.write({"method": "wallet_getProviderState"})
    remote.write({"name": "provider", "data": {"id": 1, "result": True}})

    assert outbound == [{"name": "provider", "data": {"method": "wallet_getProviderState"}}]
    assert received == [{"id": 1, "result": True}]


def test_ignored_channel_is_discarded_silently(caplog) -> None:
    mux, remote, _ = _wire()
    mux.ignore_stream("phishing")
    mux.create_stream("provider")

    with caplog.at_level(logging.WARNING):
        remote.write({"name": "phishing", "data": {"hostname": "evil.example"}})

    assert caplog.records == []


def test_unknown_channel_is_dropped_with_warning(caplog) -> None:
    mux, remote, _ = _wire()
    mux.create_stream("provider")

    with caplog.at_level(logging.WARNING):
        remote.write({"name": "metrics", "data": {}})
        remote.write("not-a-frame")

    assert 'orphaned data for stream "metrics"' in caplog.text
    assert "malformed chunk" in caplog.text


def test_duplicate_channels_are_rejected() -> None:
    mux = ObjectMultiplex()
    mux.create_stream("provider")
    mux.ignore_stream("phishing")

    with pytest.raises(ValueError):
        mux.create_stream("provider")
    with pytest.raises(ValueError):
        mux.create_stream("phishing")
    with pytest.raises(ValueError):
        mux.ignore_stream("provider")


def test_connection_loss_destroys_substreams() -> None:
    mux, remote, _ = _wire()
    provider = mux.create_stream("provider")
    closed = []
    provider.on("close", lambda: closed.append(True))

    remote.destroy()

    assert closed == [True]
    assert provider.destroyed
    assert mux.get_stream("provider") is None
