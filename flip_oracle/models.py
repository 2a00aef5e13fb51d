"""
Data models for the flip oracle.

Plain dataclasses: the player read-model, decoded chain events and issued
authorizations. Persistence lives in ``flip_oracle.store``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from eth_utils import to_normalized_address


def utc_now() -> datetime:
    """Generate timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def normalize_address(address: str) -> str:
    """Canonical form used as the store key: 0x-prefixed lowercase hex."""
    return to_normalized_address(address.strip())


@dataclass
class PlayerState:
    """Derived per-player statistics mirrored from the game contract."""

    address: str
    streak: int = 0
    karma_pool: int = 0
    last_update: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "streak": self.streak,
            # Arbitrary precision: never serialise token amounts as JSON numbers
            "karmaPool": str(self.karma_pool),
            "lastUpdate": self.last_update.isoformat(),
        }


@dataclass(frozen=True)
class ResultEvent:
    """A decoded ``GameResult`` log."""

    player: str
    won: bool
    amount_won: int
    karma_released: int
    block_number: int
    log_index: int
    tx_hash: Optional[str] = None
    streak: Optional[int] = None
    timestamp: Optional[int] = None

    @property
    def position(self) -> Tuple[int, int]:
        """Chain position used for ordering and de-duplication."""
        return (self.block_number, self.log_index)


@dataclass(frozen=True)
class Authorization:
    """A signed bet authorization and the exact values that were hashed."""

    signature: str
    nonce: int
    streak: int
    karma_pool: int
    is_karma_ready: bool
    oracle_address: str
    player: str
    bet_amount: int
    message_hash: str

    def to_dict(self, decimals: int = 18) -> Dict[str, Any]:
        return {
            "signature": self.signature,
            "nonce": self.nonce,
            "streak": self.streak,
            "karmaPool": str(self.karma_pool),
            "karmaPoolEth": self.karma_pool / 10**decimals,
            "isKarmaReady": self.is_karma_ready,
            "oracleAddress": self.oracle_address,
        }
