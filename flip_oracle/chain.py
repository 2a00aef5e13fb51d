"""
Chain gateway for the casino game contract.

Wraps the three reads the oracle needs from the chain:

- ``read_nonce(player)``: the authoritative per-player nonce (``nonces(address)``)
- ``block_number()``: current chain head
- ``get_result_logs(from_block, to_block)``: raw ``GameResult`` logs in a block range

Raw logs are decoded one at a time with ``decode_result_log`` so a single
undecodable log never poisons a whole batch.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from eth_utils import event_abi_to_log_topic, to_checksum_address
from web3 import Web3

from flip_oracle.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

RESULT_EVENT_NAME = "GameResult"

# Subset of the CasinoGame ABI used by the oracle. A full Hardhat artifact can
# be supplied through CONTRACT_ABI_PATH instead.
CASINO_GAME_ABI: List[Dict[str, Any]] = [
    {
        "inputs": [{"name": "", "type": "address"}],
        "name": "nonces",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "player", "type": "address"},
            {"indexed": False, "name": "won", "type": "bool"},
            {"indexed": False, "name": "amountWon", "type": "uint256"},
            {"indexed": False, "name": "streak", "type": "uint256"},
            {"indexed": False, "name": "karmaPoolReleased", "type": "uint256"},
            {"indexed": False, "name": "timestamp", "type": "uint256"},
        ],
        "name": RESULT_EVENT_NAME,
        "type": "event",
    },
]


def load_contract_abi(path: Optional[str]) -> List[Dict[str, Any]]:
    """Load an ABI from a Hardhat artifact (``{"abi": [...]}``) or a bare ABI list."""
    if not path:
        return CASINO_GAME_ABI

    with open(path, "r", encoding="utf-8") as fh:
        document = json.load(fh)

    abi = document.get("abi") if isinstance(document, dict) else document
    if not isinstance(abi, list):
        raise ValueError(f"No ABI found in {path}")
    return abi


def _event_abi(abi: List[Dict[str, Any]], name: str) -> Dict[str, Any]:
    for entry in abi:
        if entry.get("type") == "event" and entry.get("name") == name:
            return entry
    raise ValueError(f"Event {name} not present in contract ABI")


class ChainGateway:
    """web3.py access to the deployed game contract."""

    def __init__(self, rpc_url: str, contract_address: str, abi: Optional[List[Dict[str, Any]]] = None, timeout: int = 10):
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self.contract_address = to_checksum_address(contract_address)
        self.abi = abi or CASINO_GAME_ABI
        self.contract = self.w3.eth.contract(address=self.contract_address, abi=self.abi)
        self.result_topic = Web3.to_hex(event_abi_to_log_topic(_event_abi(self.abi, RESULT_EVENT_NAME)))

    @classmethod
    def from_config(cls, cfg) -> "ChainGateway":
        return cls(
            cfg["RPC_URL"],
            cfg["CASINO_GAME_CONTRACT_ADDRESS"],
            abi=load_contract_abi(cfg.get("CONTRACT_ABI_PATH")),
            timeout=cfg.get("RPC_TIMEOUT", 10),
        )

    def read_nonce(self, player: str) -> int:
        """Authoritative nonce for ``player``. Raises UpstreamUnavailableError on failure."""
        try:
            nonce = self.contract.functions.nonces(to_checksum_address(player)).call()
        except Exception as e:
            logger.error(f"Nonce read failed for {player}: {e}")
            raise UpstreamUnavailableError("Unable to read player nonce from chain, try again later") from e
        return int(nonce)

    def block_number(self) -> int:
        try:
            return int(self.w3.eth.block_number)
        except Exception as e:
            raise UpstreamUnavailableError(f"Unable to read chain head: {e}") from e

    def get_result_logs(self, from_block: int, to_block: int) -> List[Any]:
        """Raw GameResult logs in ``[from_block, to_block]`` as returned by the node."""
        try:
            logs = self.w3.eth.get_logs(
                {
                    "address": self.contract_address,
                    "topics": [self.result_topic],
                    "fromBlock": from_block,
                    "toBlock": to_block,
                }
            )
        except Exception as e:
            raise UpstreamUnavailableError(f"Unable to fetch {RESULT_EVENT_NAME} logs {from_block}-{to_block}: {e}") from e
        return list(logs)

    def decode_result_log(self, log: Any) -> Any:
        """Decode one raw log into a web3 event (``args``, ``blockNumber``, ...)."""
        return self.contract.events.GameResult().process_log(log)
