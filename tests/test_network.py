from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from vault_deploy.exceptions import FeeDataUnavailable, NetworkError, NonceOverrideFailed
from vault_deploy.network import NetworkClient

from conftest import make_config

ADDRESS = "0x" + "11" * 20


def _client(**eth: Any) -> tuple[NetworkClient, list[tuple[str, list[Any]]]]:
    requests: list[tuple[str, list[Any]]] = []
    response = eth.pop("response", {"result": None})

    def make_request(method: str, params: list[Any]) -> dict[str, Any]:
        requests.append((method, params))
        return response

    client = NetworkClient(make_config(1).sub_chain(0))
    client._web3 = SimpleNamespace(  # type: ignore[assignment]
        provider=SimpleNamespace(make_request=make_request),
        eth=SimpleNamespace(**eth),
    )
    return client, requests


def test_fee_data_eip1559_doubles_base_fee() -> None:
    client, _ = _client(
        gas_price=30, max_priority_fee=2, get_block=lambda tag: {"baseFeePerGas": 10}
    )

    fee_data = client.fee_data(eip1559=True)

    assert fee_data.gas_price == 30
    assert fee_data.max_fee_per_gas == 22
    assert fee_data.max_priority_fee_per_gas == 2


def test_fee_data_legacy_reads_gas_price_only() -> None:
    client, _ = _client(gas_price=30)
    fee_data = client.fee_data(eip1559=False)
    assert fee_data.max_fee_per_gas is None
    assert fee_data.gas_price == 30


def test_fee_data_without_base_fee_is_unavailable() -> None:
    client, _ = _client(gas_price=30, max_priority_fee=2, get_block=lambda tag: {})
    with pytest.raises(FeeDataUnavailable):
        client.fee_data(eip1559=True)


def test_set_nonce_verifies_result() -> None:
    client, requests = _client(get_transaction_count=lambda address: 12)

    client.set_nonce(ADDRESS, 12)

    assert requests == [("anvil_setNonce", [ADDRESS, "0xc"])]


def test_set_nonce_mismatch_is_fatal() -> None:
    client, _ = _client(get_transaction_count=lambda address: 3)
    with pytest.raises(NonceOverrideFailed) as excinfo:
        client.set_nonce(ADDRESS, 12)
    assert excinfo.value.actual == 3


def test_set_nonce_rejected_by_node() -> None:
    client, _ = _client(
        get_transaction_count=lambda address: 12,
        response={"error": {"message": "method not found"}},
    )
    with pytest.raises(NetworkError):
        client.set_nonce(ADDRESS, 12)


def test_client_is_lazy() -> None:
    client = NetworkClient(make_config(1).sub_chain(0))
    assert not client.is_connected()
    assert client.rpc_url == "http://127.0.0.1:8545"
