# MIT License
# Copyright (c) 2025 Hashborn

"""
Prometheus Metrics Exporter

Exports pool operator metrics in Prometheus format.

Metrics:
- Shares by classification result
- Rounds completed, blocks found
- Payout transactions by status
- Current round id, shares in the open round, pending transactions
"""

from prometheus_client import Counter, Gauge, CollectorRegistry

# Create registry for metrics
metrics_registry = CollectorRegistry()

# ═══════════════════════════════════════════════════════════════════
# SHARE METRICS
# ═══════════════════════════════════════════════════════════════════

shares_total = Counter(
    'proppool_shares_total',
    'Share submissions processed, by outcome',
    ['result'],
    registry=metrics_registry
)

round_shares = Gauge(
    'proppool_round_shares',
    'Accepted shares in the currently open round',
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# ROUND METRICS
# ═══════════════════════════════════════════════════════════════════

rounds_total = Counter(
    'proppool_rounds_total',
    'Total number of rounds finalized',
    registry=metrics_registry
)

blocks_found_total = Counter(
    'proppool_blocks_found_total',
    'Total number of full proofs found by the pool',
    registry=metrics_registry
)

current_round = Gauge(
    'proppool_current_round',
    'Identifier of the current round',
    registry=metrics_registry
)

pending_transactions = Gauge(
    'proppool_pending_transactions',
    'Transactions queued for the next template',
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# PAYOUT METRICS
# ═══════════════════════════════════════════════════════════════════

payouts_total = Counter(
    'proppool_payouts_total',
    'Payout transactions posted, by status',
    ['status'],
    registry=metrics_registry
)

undistributed_units_total = Counter(
    'proppool_undistributed_units_total',
    'Worker reward left undistributed because a round had no shares',
    registry=metrics_registry
)


def update_metrics(controller):
    """
    Update gauges from the round controller's current state.
    Called when metrics are scraped; counters are incremented at the source.

    Args:
        controller: RoundController instance
    """
    current_round.set(controller.round_id)
    pending_transactions.set(controller.pending.size())
    ledger = controller.ledger
    round_shares.set(ledger.total_shares if ledger else 0)
