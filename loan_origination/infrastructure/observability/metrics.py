"""Prometheus metrics for monitoring eligibility, funnel drop-off, submissions and webhook performance"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Application metrics
application_started_counter = Counter(
    "loan_application_started_total",
    "Loan applications started",
    ["outcome"],  # eligible | ineligible
)

stage_transition_counter = Counter(
    "loan_stage_transition_total",
    "Workflow stage transitions",
    ["from_stage", "to_stage", "direction"],  # forward | backward
)

blocked_advance_counter = Counter(
    "loan_blocked_advance_total",
    "Forward transitions rejected by stage validation",
    ["stage"],
)

submitted_amount_histogram = Histogram(
    "loan_submitted_amount_dollars",
    "Submitted loan principal",
    buckets=[1_000, 2_500, 5_000, 10_000, 25_000, 50_000],
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Recordkeeper webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_application_started(eligible: bool) -> None:
    application_started_counter.labels(outcome="eligible" if eligible else "ineligible").inc()


def record_transition(from_stage: str, to_stage: str, direction: str) -> None:
    stage_transition_counter.labels(from_stage=from_stage, to_stage=to_stage, direction=direction).inc()


def record_submission(amount: Decimal) -> None:
    submitted_amount_histogram.observe(float(amount))
