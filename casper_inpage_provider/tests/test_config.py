import logging

import pytest

from casper_inpage_provider.core.config import ProviderOptions, env_flag


def test_defaults_match_documented_options() -> None:
    options = ProviderOptions()

    assert options.max_event_listeners == 100
    assert options.should_send_metadata is True
    assert options.json_rpc_stream_name == "provider"
    assert options.reject_pending_on_disconnect is False


def test_from_mapping_accepts_camel_and_snake_case() -> None:
    options = ProviderOptions.from_mapping(
        {"maxEventListeners": 3, "json_rpc_stream_name": "casper"}
    )

    assert options.max_event_listeners == 3
    assert options.json_rpc_stream_name == "casper"
    assert ProviderOptions.from_mapping(None) == ProviderOptions()


@pytest.mark.parametrize(
    "mapping",
    [
        {"maxEventListeners": -1},
        {"maxEventListeners": True},
        {"jsonRpcStreamName": ""},
        {"jsonRpcStreamName": "phishing"},
    ],
)
def test_invalid_options_are_rejected(mapping) -> None:
    with pytest.raises(ValueError):
        ProviderOptions.from_mapping(mapping)


def test_unknown_options_are_logged_and_skipped(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        options = ProviderOptions.from_mapping({"unknownOption": 1, "maxEventListeners": 4})

    assert options == ProviderOptions(max_event_listeners=4)
    assert "Ignoring unknown provider option 'unknownOption'" in caplog.text


def test_merged_overrides_accept_both_spellings() -> None:
    base = ProviderOptions(max_event_listeners=7)

    merged = base.merged({"rejectPendingOnDisconnect": True, "json_rpc_stream_name": "casper"})

    assert merged == ProviderOptions(
        max_event_listeners=7,
        json_rpc_stream_name="casper",
        reject_pending_on_disconnect=True,
    )
    assert base.reject_pending_on_disconnect is False

    with pytest.raises(ValueError):
        base.merged({"maxEventListeners": -2})


def test_from_env_reads_prefixed_variables() -> None:
    options = ProviderOptions.from_env(
        {
            "CASPER_PROVIDER_MAX_LISTENERS": "25",
            "CASPER_PROVIDER_STREAM_NAME": "casper",
            "CASPER_PROVIDER_SEND_METADATA": "off",
            "CASPER_PROVIDER_REJECT_PENDING": "yes",
        }
    )

    assert options == ProviderOptions(
        max_event_listeners=25,
        should_send_metadata=False,
        json_rpc_stream_name="casper",
        reject_pending_on_disconnect=True,
    )


def test_from_env_rejects_non_integer_listener_cap() -> None:
    with pytest.raises(ValueError):
        ProviderOptions.from_env({"CASPER_PROVIDER_MAX_LISTENERS": "many"})


def test_env_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CASPER_PROVIDER_DEBUG", "True")
    assert env_flag("DEBUG") is True
    monkeypatch.delenv("CASPER_PROVIDER_DEBUG")
    assert env_flag("DEBUG", default=True) is True
    assert env_flag("DEBUG") is False
