"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNTER = Counter(
	"clubhub_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"clubhub_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

ACTIVITY_JOINS = Counter(
	"clubhub_activity_joins_total",
	"Activity join attempts by outcome",
	["outcome"],
)

ACTIVITY_LEAVES = Counter(
	"clubhub_activity_leaves_total",
	"Activity leave attempts by outcome",
	["outcome"],
)

ACTIVITY_REVIEWS = Counter(
	"clubhub_activity_reviews_total",
	"Activity review decisions",
	["decision"],
)

SETTLEMENTS = Counter(
	"clubhub_activity_settlements_total",
	"Activity settlement runs by outcome",
	["outcome"],
)

SETTLED_REGISTRANTS = Counter(
	"clubhub_settled_registrants_total",
	"Registrations moved to completed by settlement",
)

POINTS_CREDITED = Counter(
	"clubhub_points_credited_total",
	"Points credited to user balances",
	["reason"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_join(outcome: str) -> None:
	ACTIVITY_JOINS.labels(outcome=outcome).inc()


def inc_leave(outcome: str) -> None:
	ACTIVITY_LEAVES.labels(outcome=outcome).inc()


def inc_review(decision: str) -> None:
	ACTIVITY_REVIEWS.labels(decision=decision).inc()


def inc_settlement(outcome: str, registrants: int = 0) -> None:
	SETTLEMENTS.labels(outcome=outcome).inc()
	if registrants:
		SETTLED_REGISTRANTS.inc(registrants)


def inc_points(reason: str, amount: int) -> None:
	if amount > 0:
		POINTS_CREDITED.labels(reason=reason).inc(amount)
