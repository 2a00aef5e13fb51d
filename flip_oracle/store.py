"""In-memory player state store.

Keeps the derived per-player read-model (streak, karma pool) and nonce
bookkeeping in Python dictionaries. Every address is lowercased before lookup
and unknown addresses materialise as zeroed records, so callers never see a
"missing player" case.

Locking is per address: a read-modify-write for one player never blocks work
on another. ``_registry_lock`` only guards creation of the per-address locks.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Dict, List

from flip_oracle.errors import InvariantViolation, NonceRegressionError
from flip_oracle.models import PlayerState, normalize_address, utc_now

logger = logging.getLogger(__name__)

# Contract accrues this share of every losing bet into the karma pool.
KARMA_ACCRUAL_PERCENT = 10


class PlayerStateStore:
    """Thread-safe store of ``PlayerState`` records and per-player nonces."""

    def __init__(self) -> None:
        self._players: Dict[str, PlayerState] = {}
        self._nonces: Dict[str, int] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        lock = self._locks.get(key)
        if lock is None:
            with self._registry_lock:
                lock = self._locks.setdefault(key, threading.Lock())
        return lock

    def _ensure(self, key: str) -> PlayerState:
        # Caller must hold the address lock.
        state = self._players.get(key)
        if state is None:
            state = PlayerState(address=key)
            self._players[key] = state
            self._nonces.setdefault(key, 0)
            logger.debug(f"Created player record for {key}")
        return state

    def get(self, address: str) -> PlayerState:
        """Return a consistent snapshot of the player's state."""
        key = normalize_address(address)
        with self._lock_for(key):
            return replace(self._ensure(key))

    def apply_result(self, address: str, won: bool, bet_amount: int, karma_released: int) -> PlayerState:
        """
        Apply one confirmed game result and return the new state.

        Win: streak + 1; karma pool cleared only when the contract released it.
        Loss: streak reset; 10% of the bet (floored) accrues to the karma pool.
        """
        if bet_amount < 0 or karma_released < 0:
            raise ValueError("bet_amount and karma_released must be non-negative")

        key = normalize_address(address)
        with self._lock_for(key):
            state = self._ensure(key)
            if won:
                state.streak += 1
                if karma_released > 0:
                    state.karma_pool = 0
            else:
                state.streak = 0
                state.karma_pool += bet_amount * KARMA_ACCRUAL_PERCENT // 100
            state.last_update = utc_now()

            if state.streak < 0 or state.karma_pool < 0:
                raise InvariantViolation(f"Negative counters for {key}: {state}")
            return replace(state)

    def current_nonce(self, address: str) -> int:
        key = normalize_address(address)
        with self._lock_for(key):
            self._ensure(key)
            return self._nonces[key]

    def advance_nonce(self, address: str) -> int:
        """Increment the locally tracked nonce and return the new value."""
        key = normalize_address(address)
        with self._lock_for(key):
            self._ensure(key)
            self._nonces[key] += 1
            return self._nonces[key]

    def record_nonce(self, address: str, value: int) -> int:
        """
        Record a nonce read from the chain.

        The recorded value never decreases; a lower observation means the node
        we read from is behind one we read earlier, and is refused.
        """
        key = normalize_address(address)
        with self._lock_for(key):
            self._ensure(key)
            recorded = self._nonces[key]
            if value < recorded:
                raise NonceRegressionError(key, value, recorded)
            self._nonces[key] = value
            return value

    def all_players(self) -> List[PlayerState]:
        keys = list(self._players)
        return [self.get(key) for key in keys]

    def reset(self) -> None:
        with self._registry_lock:
            self._players.clear()
            self._nonces.clear()
            self._locks.clear()
