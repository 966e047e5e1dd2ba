"""
Prometheus metrics for the transaction retry core.
Import this module at app startup to register them in the global REGISTRY.
"""

from prometheus_client import Counter, Histogram

# outcome: committed | conflict | connection | fatal
TX_ATTEMPTS_TOTAL = Counter(
    "rewards_tx_attempts_total",
    "Transaction attempts by operation and outcome",
    ["operation", "outcome"],
)

TX_LATENCY_MS = Histogram(
    "rewards_tx_latency_ms",
    "Wall time of a retried transaction, including backoff, in milliseconds",
    ["operation"],
    buckets=[1, 2.5, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000],
)

DB_CONNECTIONS_OPENED_TOTAL = Counter(
    "rewards_db_connections_opened_total",
    "Database connections opened by the connection manager",
)


class MetricsRegistry:
    """Structured access to the store's metrics."""

    tx_attempts_total = TX_ATTEMPTS_TOTAL
    tx_latency_ms = TX_LATENCY_MS
    db_connections_opened_total = DB_CONNECTIONS_OPENED_TOTAL


# Singleton instance
metrics_registry = MetricsRegistry()
