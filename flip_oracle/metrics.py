"""Prometheus metrics shared by the HTTP layer and the reconciler."""

from prometheus_client import CollectorRegistry, Counter, Gauge

registry = CollectorRegistry()

request_counter = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
    registry=registry,
)
authorizations_total = Counter(
    "oracle_authorizations_total",
    "Bet authorization requests by outcome",
    ["outcome"],
    registry=registry,
)
events_total = Counter(
    "oracle_result_events_total",
    "GameResult events seen by the reconciler",
    ["status"],
    registry=registry,
)
cursor_block = Gauge(
    "oracle_reconciler_cursor_block",
    "Block number of the last applied GameResult event",
    registry=registry,
)
tracked_players = Gauge(
    "oracle_tracked_players",
    "Players present in the state store",
    registry=registry,
)
