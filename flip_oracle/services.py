"""
Wiring of the oracle's long-lived components.

One ``OracleServices`` per process: the state store shared by request handlers
and the reconciler, the signer holding the oracle key, and the chain gateway.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from flip_oracle.chain import ChainGateway
from flip_oracle.encoding import OracleKey
from flip_oracle.reconciler import ChainEventReconciler
from flip_oracle.signer import NONCE_FROM_STORE, AuthorizationSigner
from flip_oracle.store import PlayerStateStore

logger = logging.getLogger(__name__)


@dataclass
class OracleServices:
    store: PlayerStateStore
    chain: Any
    signer: AuthorizationSigner
    reconciler: ChainEventReconciler
    karma_threshold: int
    token_decimals: int


def build_services(cfg: Mapping[str, Any], chain: Optional[Any] = None, store: Optional[PlayerStateStore] = None) -> OracleServices:
    """
    Build the store, signer and reconciler from configuration.

    Args:
        cfg: validated configuration mapping
        chain: chain gateway override (tests pass a fake)
        store: state store override

    Returns:
        OracleServices bundle
    """
    decimals = cfg.get("TOKEN_DECIMALS", 18)
    karma_threshold = cfg["KARMA_THRESHOLD_TOKENS"] * 10**decimals
    local_nonces = cfg.get("NONCE_SOURCE") == NONCE_FROM_STORE

    store = store or PlayerStateStore()
    chain = chain or ChainGateway.from_config(cfg)

    signer = AuthorizationSigner(
        store,
        chain,
        OracleKey(cfg["ORACLE_PRIVATE_KEY"]),
        cfg["CASINO_GAME_CONTRACT_ADDRESS"],
        karma_threshold,
        nonce_source=cfg.get("NONCE_SOURCE", "chain"),
        token_decimals=decimals,
    )
    reconciler = ChainEventReconciler(
        store,
        chain,
        track_nonces=local_nonces,
        start_block=cfg.get("RECONCILER_START_BLOCK"),
        poll_interval=cfg.get("POLL_INTERVAL_SECONDS", 4),
        chunk_size=cfg.get("LOG_CHUNK_SIZE", 2000),
        confirmations=cfg.get("CONFIRMATIONS", 0),
    )

    logger.info(f"Oracle signer ready: address={signer.oracle_address} nonce_source={signer.nonce_source}")
    return OracleServices(
        store=store,
        chain=chain,
        signer=signer,
        reconciler=reconciler,
        karma_threshold=karma_threshold,
        token_decimals=decimals,
    )
