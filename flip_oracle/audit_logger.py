"""
Audit logging for the flip oracle.

Every signature issued and every chain result applied leaves one line on the
``audit`` logger, so the read-model can be reconstructed and disputes traced.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_logger = logging.getLogger("audit")
_audit_logger = None  # Will be initialized by init_audit_logger


def init_audit_logger():
    """Initialize the audit logger."""
    global _audit_logger

    _logger.setLevel(logging.INFO)

    # Add console handler if not already present
    if not _logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - AUDIT - %(levelname)s - %(message)s"))
        _logger.addHandler(handler)

    _audit_logger = AuditLogger()

    _logger.info("Audit logger initialized")


def get_audit_logger():
    """Get the audit logger instance."""
    global _audit_logger

    if _audit_logger is None:
        init_audit_logger()
    return _audit_logger


class AuditLogger:
    """Audit logging interface for oracle events."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or _logger

    def log_event(self, event: str, **details: Any) -> None:
        """Generic structured audit event."""

        payload = {"event": event, **details, "timestamp": datetime.now(timezone.utc).isoformat()}
        self.logger.info(json.dumps(payload, default=str))

    def log_authorization(self, player: str, bet_amount: int, nonce: int, streak: int, karma_pool: int, karma_ready: bool):
        """Log a signed bet authorization."""
        self.logger.info(
            f"AUTHORIZATION | player={player} | bet={bet_amount} | nonce={nonce} | "
            f"streak={streak} | karma={karma_pool} | karma_ready={karma_ready}"
        )

    def log_result_applied(self, player: str, won: bool, block: int, log_index: int, streak: int, karma_pool: int):
        """Log a GameResult applied to the read-model."""
        outcome = "WIN" if won else "LOSS"
        self.logger.info(
            f"RESULT_APPLIED | player={player} | outcome={outcome} | block={block} | log={log_index} | "
            f"streak={streak} | karma={karma_pool}"
        )

    def log_event_skipped(self, reason: str, block: Optional[int] = None, log_index: Optional[int] = None, error: Optional[str] = None):
        """Log a chain event that was not applied."""
        msg = f"EVENT_SKIPPED | reason={reason} | block={block} | log={log_index}"
        if error:
            msg += f" | error={error}"
        self.logger.warning(msg)

    def log_upstream_failure(self, operation: str, error: str):
        """Log a failed chain read."""
        self.logger.error(f"UPSTREAM_FAILURE | operation={operation} | error={error}")

    def log_validation_failure(self, field: Optional[str], error: str, ip_address: Optional[str] = None):
        """Log a rejected request."""
        self.logger.info(f"VALIDATION_FAILURE | field={field} | error={error} | ip={ip_address}")

    def log_error(self, error_type: str, error_msg: str, context: Optional[Dict[str, Any]] = None):
        """Log application error."""
        msg = f"ERROR | type={error_type} | msg={error_msg}"
        if context:
            msg += f" | context={context}"
        self.logger.error(msg)
