"""
Unit tests for the web3 chain gateway.

No node is contacted: raw logs are ABI-encoded locally and web3 calls are
patched where a network round trip would happen.
"""

import json
from unittest.mock import PropertyMock, patch

import pytest
from eth_abi import encode

from fakes import CONTRACT_ADDRESS, PLAYER_ADDRESS
from flip_oracle.chain import CASINO_GAME_ABI, ChainGateway, load_contract_abi
from flip_oracle.errors import UpstreamUnavailableError
from flip_oracle.reconciler import ChainEventReconciler


@pytest.fixture
def gateway():
    return ChainGateway("http://127.0.0.1:8545", CONTRACT_ADDRESS)


def _raw_result_log(gateway, player, won, block, log_index=0, amount_won=0, streak=0, released=0):
    """A GameResult log shaped the way eth_getLogs returns it."""
    return {
        "address": CONTRACT_ADDRESS,
        "topics": [
            bytes.fromhex(gateway.result_topic[2:]),
            b"\x00" * 12 + bytes.fromhex(player[2:]),
        ],
        "data": encode(
            ["bool", "uint256", "uint256", "uint256", "uint256"],
            [won, amount_won, streak, released, 1700000000],
        ),
        "blockNumber": block,
        "logIndex": log_index,
        "transactionIndex": 0,
        "transactionHash": b"\x0c" * 32,
        "blockHash": b"\x0b" * 32,
    }


class TestResultLogDecoding:
    """Real ABI decoding through the reconciler."""

    def test_raw_log_is_applied(self, gateway, store):
        reconciler = ChainEventReconciler(store, gateway)
        log = _raw_result_log(gateway, PLAYER_ADDRESS, True, 12, log_index=3, amount_won=19, streak=4, released=40)

        assert reconciler.process_logs([log]) == 1

        state = store.get(PLAYER_ADDRESS)
        assert state.streak == 1
        assert state.karma_pool == 0
        assert reconciler.cursor == (12, 3)

    def test_decoded_fields(self, gateway, store):
        reconciler = ChainEventReconciler(store, gateway)
        log = _raw_result_log(gateway, PLAYER_ADDRESS, False, 7, amount_won=0, streak=4, released=40)

        event = reconciler.decode_event(log)

        assert event.player == PLAYER_ADDRESS.lower()
        assert event.won is False
        assert event.streak == 4
        assert event.karma_released == 40
        assert event.timestamp == 1700000000
        assert event.tx_hash == "0x" + "0c" * 32

    def test_truncated_data_is_skipped(self, gateway, store):
        reconciler = ChainEventReconciler(store, gateway)
        bad = _raw_result_log(gateway, PLAYER_ADDRESS, True, 5)
        bad["data"] = b""
        good = _raw_result_log(gateway, PLAYER_ADDRESS, True, 6)

        assert reconciler.process_logs([bad, good]) == 1
        assert store.get(PLAYER_ADDRESS).streak == 1


class TestReadNonce:
    def test_returns_contract_value(self, gateway):
        with patch.object(gateway.contract.functions, "nonces") as nonces:
            nonces.return_value.call.return_value = 7

            assert gateway.read_nonce(PLAYER_ADDRESS.lower()) == 7

        nonces.assert_called_once_with(PLAYER_ADDRESS)

    def test_rpc_failure_is_retryable(self, gateway):
        with patch.object(gateway.contract.functions, "nonces", side_effect=ConnectionError("connection refused")):
            with pytest.raises(UpstreamUnavailableError) as exc_info:
                gateway.read_nonce(PLAYER_ADDRESS)

        assert exc_info.value.status_code == 503
        assert exc_info.value.to_dict()["retryable"] is True


class TestGetResultLogs:
    def test_filters_by_contract_and_topic(self, gateway):
        with patch.object(gateway.w3.eth, "get_logs", return_value=[]) as get_logs:
            assert gateway.get_result_logs(10, 20) == []

        get_logs.assert_called_once_with(
            {
                "address": CONTRACT_ADDRESS,
                "topics": [gateway.result_topic],
                "fromBlock": 10,
                "toBlock": 20,
            }
        )

    def test_rpc_failure_is_wrapped(self, gateway):
        with patch.object(gateway.w3.eth, "get_logs", side_effect=TimeoutError("read timed out")):
            with pytest.raises(UpstreamUnavailableError, match="10-20"):
                gateway.get_result_logs(10, 20)

    def test_block_number_failure_is_wrapped(self, gateway):
        with patch.object(type(gateway.w3.eth), "block_number", new_callable=PropertyMock) as block_number:
            block_number.side_effect = ConnectionError("connection refused")

            with pytest.raises(UpstreamUnavailableError):
                gateway.block_number()


class TestLoadContractAbi:
    """ABI sources: built-in, Hardhat artifact, bare list."""

    def test_default_abi_when_unset(self):
        assert load_contract_abi(None) is CASINO_GAME_ABI
        assert load_contract_abi("") is CASINO_GAME_ABI

    def test_hardhat_artifact(self, tmp_path):
        path = tmp_path / "CasinoGame.json"
        path.write_text(json.dumps({"contractName": "CasinoGame", "abi": CASINO_GAME_ABI, "bytecode": "0x"}))

        assert load_contract_abi(str(path)) == CASINO_GAME_ABI

    def test_bare_abi_list(self, tmp_path):
        path = tmp_path / "abi.json"
        path.write_text(json.dumps(CASINO_GAME_ABI))

        assert load_contract_abi(str(path)) == CASINO_GAME_ABI

    def test_document_without_abi_rejected(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text(json.dumps({"bytecode": "0x"}))

        with pytest.raises(ValueError, match="No ABI"):
            load_contract_abi(str(path))

    def test_gateway_requires_result_event(self):
        functions_only = [entry for entry in CASINO_GAME_ABI if entry["type"] != "event"]

        with pytest.raises(ValueError, match="GameResult"):
            ChainGateway("http://127.0.0.1:8545", CONTRACT_ADDRESS, abi=functions_only)

    def test_from_config_loads_abi_path(self, tmp_path):
        path = tmp_path / "CasinoGame.json"
        path.write_text(json.dumps({"abi": CASINO_GAME_ABI}))

        gateway = ChainGateway.from_config(
            {
                "RPC_URL": "http://127.0.0.1:8545",
                "CASINO_GAME_CONTRACT_ADDRESS": CONTRACT_ADDRESS.lower(),
                "CONTRACT_ABI_PATH": str(path),
            }
        )

        assert gateway.contract_address == CONTRACT_ADDRESS
        assert gateway.abi == CASINO_GAME_ABI
