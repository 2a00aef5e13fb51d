"""Error taxonomy for the flip oracle.

Validation and upstream errors carry enough structure for the HTTP layer to
tell "fix your input" apart from "try again later".
"""

from typing import Any, Dict, Optional


class OracleError(Exception):
    """Base class for all oracle errors."""

    error_code = "oracle_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error_code, "message": self.message}


class ValidationError(OracleError):
    """Malformed caller input. Raised before any side effect or chain I/O."""

    error_code = "validation_error"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        if self.field:
            payload["field"] = self.field
        return payload


class UpstreamUnavailableError(OracleError):
    """The chain could not be read; the request may be retried later."""

    error_code = "upstream_unavailable"
    status_code = 503

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["retryable"] = True
        return payload


class NonceRegressionError(UpstreamUnavailableError):
    """The chain reported a nonce lower than one already observed."""

    def __init__(self, address: str, observed: int, recorded: int):
        super().__init__(
            f"Nonce for {address} went backwards ({observed} < {recorded}); chain node appears stale"
        )
        self.address = address
        self.observed = observed
        self.recorded = recorded


class EventDecodeError(OracleError):
    """A GameResult log could not be turned into a ResultEvent."""

    error_code = "event_decode_error"


class InvariantViolation(OracleError):
    """Internal state broke an invariant. Not expected in normal operation."""

    error_code = "internal_error"
