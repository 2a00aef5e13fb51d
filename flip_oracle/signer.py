"""
Bet authorization signer.

Turns a (player, bet amount) request into a signature the game contract will
accept. Signing is read-only with respect to player state: the store is only
snapshotted, and the nonce is never advanced here because the contract bumps
its own nonce after verifying the signature.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Union

from eth_utils import is_hex_address, to_hex

from flip_oracle.audit_logger import get_audit_logger
from flip_oracle.encoding import UINT256_MAX, OracleKey, encode_bet_message, hash_message
from flip_oracle.errors import ValidationError
from flip_oracle.models import Authorization, normalize_address
from flip_oracle.store import PlayerStateStore

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

_DECIMAL_AMOUNT = re.compile(r"^([0-9]+)(?:\.([0-9]+))?$")
# Digits in 2**256 - 1
_UINT256_DIGITS = len(str(UINT256_MAX))

NONCE_FROM_CHAIN = "chain"
NONCE_FROM_STORE = "local"


def validate_address(address: object, field: str = "playerAddress") -> str:
    """Return the canonical 0x-prefixed lowercase address or raise ValidationError."""
    if not isinstance(address, str):
        raise ValidationError("Invalid address format: expected 0x followed by 40 hex characters", field=field)
    address = address.strip()
    if not address.startswith("0x") or not is_hex_address(address):
        raise ValidationError("Invalid address format: expected 0x followed by 40 hex characters", field=field)
    return normalize_address(address)


def parse_token_amount(raw: Union[str, int], decimals: int = 18, field: str = "betAmount") -> int:
    """
    Convert a decimal token amount (e.g. ``"10.5"``) to its smallest-unit integer.

    Rejects anything that would lose precision: more fractional digits than
    ``decimals`` (trailing zeros excepted), exponents, signs, floats, and
    values that overflow uint256. The amount must be strictly positive.
    """
    if isinstance(raw, bool) or not isinstance(raw, (str, int)):
        raise ValidationError("betAmount must be a decimal string", field=field)

    if isinstance(raw, int):
        if raw <= 0:
            raise ValidationError("betAmount must be greater than zero", field=field)
        if raw > UINT256_MAX // 10**decimals:
            raise ValidationError("betAmount is too large", field=field)
        return raw * 10**decimals

    text = str(raw).strip()
    match = _DECIMAL_AMOUNT.match(text)
    if not match:
        raise ValidationError(f"betAmount {text!r} is not a plain positive decimal number", field=field)

    whole, fraction = match.group(1).lstrip("0") or "0", (match.group(2) or "").rstrip("0")
    if len(whole) > _UINT256_DIGITS:
        raise ValidationError("betAmount is too large", field=field)
    if len(fraction) > decimals:
        raise ValidationError(
            f"betAmount {text!r} has more than {decimals} decimal places and cannot be represented exactly",
            field=field,
        )

    amount = int(whole) * 10**decimals + int(fraction.ljust(decimals, "0") or "0")
    if amount <= 0:
        raise ValidationError("betAmount must be greater than zero", field=field)
    if amount > UINT256_MAX:
        raise ValidationError("betAmount is too large", field=field)
    return amount


class AuthorizationSigner:
    """Builds and signs the canonical bet message."""

    def __init__(
        self,
        store: PlayerStateStore,
        chain,
        oracle_key: OracleKey,
        contract_address: str,
        karma_threshold: int,
        nonce_source: str = NONCE_FROM_CHAIN,
        token_decimals: int = 18,
    ):
        if nonce_source not in (NONCE_FROM_CHAIN, NONCE_FROM_STORE):
            raise ValueError(f"Unknown nonce source: {nonce_source}")
        self.store = store
        self.chain = chain
        self.oracle_key = oracle_key
        self.contract_address = validate_address(contract_address, field="contract")
        self.karma_threshold = karma_threshold
        self.nonce_source = nonce_source
        self.token_decimals = token_decimals

    @property
    def oracle_address(self) -> str:
        return self.oracle_key.address

    def is_karma_ready(self, karma_pool: int) -> bool:
        return karma_pool >= self.karma_threshold

    def _nonce_for(self, player: str) -> int:
        if self.nonce_source == NONCE_FROM_STORE:
            return self.store.current_nonce(player)
        # Errors propagate: a guessed nonce is never a safe default.
        nonce = self.chain.read_nonce(player)
        return self.store.record_nonce(player, nonce)

    def authorize(self, player_address: object, bet_amount_raw: Union[str, int], ip_address: Optional[str] = None) -> Authorization:
        """
        Sign a bet for ``player_address``.

        Args:
            player_address: 0x-prefixed account address (any casing)
            bet_amount_raw: decimal token amount, e.g. ``"10"`` or ``"0.5"``

        Returns:
            Authorization holding the signature and the exact values hashed

        Raises:
            ValidationError: malformed address or amount (before any chain I/O)
            UpstreamUnavailableError: the nonce could not be read from chain
        """
        try:
            player = validate_address(player_address)
            bet_amount = parse_token_amount(bet_amount_raw, self.token_decimals)
        except ValidationError as e:
            audit_logger.log_validation_failure(e.field, e.message, ip_address)
            raise

        snapshot = self.store.get(player)
        karma_ready = self.is_karma_ready(snapshot.karma_pool)
        nonce = self._nonce_for(player)

        message = encode_bet_message(
            player,
            bet_amount,
            snapshot.streak,
            snapshot.karma_pool,
            karma_ready,
            nonce,
            self.contract_address,
        )
        message_hash = hash_message(message)
        signature = self.oracle_key.sign_hash(message_hash)

        audit_logger.log_authorization(player, bet_amount, nonce, snapshot.streak, snapshot.karma_pool, karma_ready)
        logger.info(f"[FLIP] Signature issued for {player} (nonce={nonce})")

        return Authorization(
            signature=signature,
            nonce=nonce,
            streak=snapshot.streak,
            karma_pool=snapshot.karma_pool,
            is_karma_ready=karma_ready,
            oracle_address=self.oracle_address,
            player=player,
            bet_amount=bet_amount,
            message_hash=to_hex(message_hash),
        )
