"""
Prometheus Metrics Exporter
Exposes query, dedup and notification counters
"""

import logging

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client import CONTENT_TYPE_LATEST

logger = logging.getLogger(__name__)

# Create custom registry to avoid conflicts
registry = CollectorRegistry()

# ====================  QUERY METRICS ====================

query_total = Counter(
    'wafbot_queries_total',
    'Athena queries by final state',
    ['state', 'region'],
    registry=registry
)

query_duration_seconds = Histogram(
    'wafbot_query_duration_seconds',
    'Submission-to-outcome latency',
    ['region'],
    buckets=(0.5, 1, 2, 4, 8, 15, 30, 45, 60),
    registry=registry
)

query_cancellations_total = Counter(
    'wafbot_query_cancellations_total',
    'Backend cancellation requests issued after a deadline',
    ['region', 'result'],
    registry=registry
)

# ====================  INTAKE / NOTIFY METRICS ====================

dedup_suppressed_total = Counter(
    'wafbot_dedup_suppressed_total',
    'Work or messages suppressed by an idempotency cache',
    ['cache'],
    registry=registry
)

events_total = Counter(
    'wafbot_events_total',
    'Inbound chat events by disposition',
    ['disposition'],
    registry=registry
)

notifications_total = Counter(
    'wafbot_notifications_total',
    'Outbound chat messages by result',
    ['result'],
    registry=registry
)


def get_metrics() -> bytes:
    """Render the registry in Prometheus exposition format"""
    return generate_latest(registry)


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST
