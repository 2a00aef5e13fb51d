"""
Canonical bet message: packed encoding, hashing and oracle signing.

The game contract rebuilds the same message on-chain with
``keccak256(abi.encodePacked(...))`` and recovers the signer through the
``"\\x19Ethereum Signed Message:\\n32"`` prefix. Field order and widths below
are a wire contract with that verifier:

    address  player          20 bytes
    uint256  betAmount       32 bytes
    uint256  streak          32 bytes
    uint256  karmaPool       32 bytes
    bool     isKarmaReady     1 byte
    uint256  nonce           32 bytes
    address  contract        20 bytes
                            ---------
                            169 bytes
"""

from __future__ import annotations

import logging
from typing import Tuple

from eth_abi.packed import encode_packed
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak, to_checksum_address, to_hex

logger = logging.getLogger(__name__)

MESSAGE_TYPES: Tuple[str, ...] = (
    "address",
    "uint256",
    "uint256",
    "uint256",
    "bool",
    "uint256",
    "address",
)
MESSAGE_LENGTH = 169
UINT256_MAX = 2**256 - 1


def encode_bet_message(
    player: str,
    bet_amount: int,
    streak: int,
    karma_pool: int,
    is_karma_ready: bool,
    nonce: int,
    contract: str,
) -> bytes:
    """Pack the signed fields exactly as the contract's ``abi.encodePacked``."""
    for name, value in (("bet_amount", bet_amount), ("streak", streak), ("karma_pool", karma_pool), ("nonce", nonce)):
        if not 0 <= value <= UINT256_MAX:
            raise ValueError(f"{name} does not fit in uint256: {value}")

    message = encode_packed(
        list(MESSAGE_TYPES),
        [
            to_checksum_address(player),
            bet_amount,
            streak,
            karma_pool,
            bool(is_karma_ready),
            nonce,
            to_checksum_address(contract),
        ],
    )
    if len(message) != MESSAGE_LENGTH:
        raise ValueError(f"Packed message has unexpected length {len(message)}")
    return message


def hash_message(message: bytes) -> bytes:
    """keccak256 of the packed message."""
    return keccak(message)


class OracleKey:
    """
    The oracle's signing key.

    Loaded once and never mutated, so one instance can be shared by every
    request thread.
    """

    def __init__(self, private_key: str):
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    def sign_hash(self, message_hash: bytes) -> str:
        """
        Sign a 32-byte hash as a personal message.

        The raw hash bytes (not their hex text) are prefixed with
        ``"\\x19Ethereum Signed Message:\\n32"``.
        """
        if len(message_hash) != 32:
            raise ValueError("message_hash must be 32 bytes")
        signed = self._account.sign_message(encode_defunct(primitive=message_hash))
        return to_hex(signed.signature)

    def verify(self, message_hash: bytes, signature: str) -> bool:
        return recover_signer(message_hash, signature).lower() == self.address.lower()


def recover_signer(message_hash: bytes, signature: str) -> str:
    """Address that produced ``signature`` over ``message_hash`` (personal-message scheme)."""
    return Account.recover_message(encode_defunct(primitive=message_hash), signature=signature)
