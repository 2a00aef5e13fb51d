"""
GameResult reconciler.

Polls the game contract's ``GameResult`` logs and folds each one into the
player state store. Live polling and historical backfill share one path
(``process_logs``), so replaying history yields the same end state as having
watched it live.

A cursor ``(block_number, log_index)`` records the last applied event. Events
at or before the cursor are treated as re-deliveries and skipped, which makes
overlapping scans and repeated backfills harmless. The store is in-memory, so
the cursor lives as long as the process: stop/start resumes from it, while a
restarted process replays history from its configured start block.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Tuple

from eth_abi.exceptions import DecodingError
from eth_utils import is_hex_address, to_hex
from web3.exceptions import Web3Exception

from flip_oracle import metrics
from flip_oracle.audit_logger import get_audit_logger
from flip_oracle.errors import EventDecodeError, UpstreamUnavailableError
from flip_oracle.models import PlayerState, ResultEvent, normalize_address
from flip_oracle.store import PlayerStateStore

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

Cursor = Tuple[int, int]


def _get(obj: Any, key: str) -> Any:
    # web3 returns AttributeDicts; tests and fixtures may hand in plain dicts
    try:
        return obj[key]
    except (KeyError, TypeError):
        return getattr(obj, key)


class ChainEventReconciler:
    """Applies on-chain game results to a ``PlayerStateStore``."""

    def __init__(
        self,
        store: PlayerStateStore,
        chain,
        track_nonces: bool = False,
        start_block: Optional[int] = None,
        poll_interval: float = 4,
        chunk_size: int = 2000,
        confirmations: int = 0,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.store = store
        self.chain = chain
        self.track_nonces = track_nonces
        self.start_block = start_block
        self.poll_interval = poll_interval
        self.chunk_size = chunk_size
        self.confirmations = confirmations

        self.cursor: Optional[Cursor] = None
        self._next_block: Optional[int] = start_block
        self._process_lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Decoding and application
    # ------------------------------------------------------------------

    def decode_event(self, log: Any) -> ResultEvent:
        """Decode a raw GameResult log. Raises EventDecodeError on any malformed field."""
        try:
            decoded = self.chain.decode_result_log(log)
            args = _get(decoded, "args")
            player = _get(args, "player")
            won = _get(args, "won")
            amount_won = int(_get(args, "amountWon"))
            karma_released = int(_get(args, "karmaPoolReleased"))
            block_number = _get(decoded, "blockNumber")
            log_index = _get(decoded, "logIndex")
        except (Web3Exception, DecodingError, AttributeError, KeyError, TypeError, ValueError) as e:
            raise EventDecodeError(f"Undecodable GameResult log: {e}") from e

        if not isinstance(player, str) or not is_hex_address(player) or not isinstance(won, bool):
            raise EventDecodeError(f"GameResult log has invalid player/won fields: {player!r}, {won!r}")
        if block_number is None or log_index is None:
            raise EventDecodeError("GameResult log has no chain position (pending log?)")
        if amount_won < 0 or karma_released < 0:
            raise EventDecodeError("GameResult log carries negative amounts")

        streak = args.get("streak") if hasattr(args, "get") else None
        timestamp = args.get("timestamp") if hasattr(args, "get") else None
        tx_hash = decoded.get("transactionHash") if hasattr(decoded, "get") else None

        return ResultEvent(
            player=normalize_address(player),
            won=won,
            amount_won=amount_won,
            karma_released=karma_released,
            block_number=int(block_number),
            log_index=int(log_index),
            tx_hash=to_hex(tx_hash) if isinstance(tx_hash, bytes) else tx_hash,
            streak=int(streak) if streak is not None else None,
            timestamp=int(timestamp) if timestamp is not None else None,
        )

    def apply_event(self, event: ResultEvent) -> PlayerState:
        """Fold one result into the store and advance the cursor."""
        # The event does not carry the original bet; on a loss the contract
        # already accrued karma itself, so no local accrual is recorded here.
        bet_amount = 0
        state = self.store.apply_result(event.player, event.won, bet_amount, event.karma_released)
        if self.track_nonces:
            self.store.advance_nonce(event.player)

        self.cursor = event.position
        metrics.cursor_block.set(event.block_number)
        metrics.events_total.labels(status="applied").inc()
        audit_logger.log_result_applied(
            event.player, event.won, event.block_number, event.log_index, state.streak, state.karma_pool
        )

        if event.streak is not None and event.streak != state.streak:
            logger.warning(
                f"Streak drift for {event.player}: contract={event.streak} local={state.streak} "
                f"(block {event.block_number})"
            )
        return state

    def process_logs(self, logs: Iterable[Any]) -> int:
        """
        Decode, order and apply a batch of raw logs.

        Malformed logs are skipped individually; logs at or before the cursor
        are skipped as re-deliveries. Returns the number of events applied.
        """
        events: List[ResultEvent] = []
        for log in logs:
            try:
                events.append(self.decode_event(log))
            except EventDecodeError as e:
                logger.error(f"Skipping malformed GameResult log: {e}")
                metrics.events_total.labels(status="malformed").inc()
                audit_logger.log_event_skipped("malformed", error=e.message)

        events.sort(key=lambda ev: ev.position)

        applied = 0
        with self._process_lock:
            for event in events:
                if self.cursor is not None and event.position <= self.cursor:
                    logger.debug(f"Skipping already-applied event at {event.position}")
                    metrics.events_total.labels(status="duplicate").inc()
                    audit_logger.log_event_skipped("duplicate", event.block_number, event.log_index)
                    continue
                self.apply_event(event)
                applied += 1
        return applied

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def _safe_head(self) -> int:
        return max(self.chain.block_number() - self.confirmations, 0)

    def _scan(self, from_block: int, to_block: int) -> int:
        # Held for the whole range so backfill and live windows never interleave
        with self._process_lock:
            applied = 0
            start = from_block
            while start <= to_block:
                end = min(start + self.chunk_size - 1, to_block)
                logs = self.chain.get_result_logs(start, end)
                applied += self.process_logs(logs)
                if self._next_block is None or self._next_block <= end:
                    self._next_block = end + 1
                start = end + 1
            return applied

    def backfill(self, from_block: int, to_block: Optional[int] = None) -> int:
        """
        Replay finalized GameResult history in ascending order.

        Args:
            from_block: first block to scan
            to_block: last block to scan (defaults to the confirmed chain head)

        Returns:
            Number of events applied (duplicates and malformed logs excluded)
        """
        if to_block is None:
            to_block = self._safe_head()
        if from_block > to_block:
            return 0
        if self.cursor is not None and from_block <= self.cursor[0]:
            logger.warning(
                f"Backfill from block {from_block} overlaps applied events up to {self.cursor}; "
                "those events will be skipped as duplicates"
            )

        logger.info(f"🔄 Backfilling GameResult events from block {from_block} to {to_block}")
        applied = self._scan(from_block, to_block)
        logger.info(f"✅ Backfill applied {applied} events (cursor={self.cursor})")
        return applied

    def poll_once(self) -> int:
        """Process the next window of confirmed blocks. Returns events applied."""
        head = self._safe_head()
        if self._next_block is None:
            self._next_block = head
        if self._next_block > head:
            return 0
        end = min(self._next_block + self.chunk_size - 1, head)
        return self._scan(self._next_block, end)

    def is_caught_up(self) -> bool:
        try:
            return self._next_block is not None and self._next_block > self._safe_head()
        except UpstreamUnavailableError:
            return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start polling in a daemon thread (from the cursor, start block, or chain head)."""
        if self.is_running:
            logger.warning("Reconciler already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="game-result-reconciler", daemon=True)
        self._thread.start()
        logger.info("Starting GameResult reconciler")

    def stop(self, timeout: Optional[float] = 10) -> None:
        """Stop polling. Work already applied stays applied; nothing is buffered."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Reconciler thread did not stop within timeout")
            else:
                self._thread = None
        logger.info(f"Reconciler stopped (cursor={self.cursor})")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll_once()
                if not self.is_caught_up():
                    # Catching up: scan the next window without sleeping
                    continue
            except UpstreamUnavailableError as e:
                logger.warning(f"RPC Error: {e}")
                audit_logger.log_upstream_failure("poll_game_results", str(e))
            except Exception as e:
                logger.exception(f"Reconciler poll failed: {e}")
                audit_logger.log_error(type(e).__name__, str(e), context={"next_block": self._next_block})
            self._stop_event.wait(self.poll_interval)

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.is_running,
            "cursor": {"block_number": self.cursor[0], "log_index": self.cursor[1]} if self.cursor else None,
            "next_block": self._next_block,
        }
