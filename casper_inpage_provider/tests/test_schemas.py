import pytest

from casper_inpage_provider.core.schemas import (
    ConnectInfo,
    WalletProviderState,
    is_notification,
    make_request,
)


def test_make_request_omits_absent_members() -> None:
    assert make_request("casper_accounts") == {"jsonrpc": "2.0", "method": "casper_accounts"}
    assert make_request("casper_sign", ["hi"], request_id=4) == {
        "jsonrpc": "2.0",
        "id": 4,
        "method": "casper_sign",
        "params": ["hi"],
    }


def test_notification_detection() -> None:
    assert is_notification(make_request("wallet_chainChanged", {"chainId": "0x1"}))
    assert not is_notification(make_request("wallet_chainChanged", request_id=1))
    assert not is_notification({"id": None, "result": True})


def test_provider_state_payload_parsing() -> None:
    state = WalletProviderState.from_payload({"accounts": ["a1"], "chainId": "0x1", "isUnlocked": True})

    assert (state.accounts, state.chain_id, state.is_unlocked) == (["a1"], "0x1", True)
    assert ConnectInfo("0x1").to_payload() == {"chainId": "0x1"}
    with pytest.raises(ValueError):
        WalletProviderState.from_payload(["not", "an", "object"])
