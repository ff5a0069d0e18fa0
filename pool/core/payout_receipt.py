"""
Payout receipt tracking.

Stores the outcome of every payout transaction the operator posts, so partial
payout failures can be reconciled out-of-band.
"""
from dataclasses import dataclass
from typing import Optional, Dict, List
import time
import logging
from threading import RLock

logger = logging.getLogger(__name__)


@dataclass
class PayoutReceipt:
    """
    Receipt for one payout transaction.

    Attributes:
        tx_hash: Payout transaction hash
        round_id: Round whose reward this payout belongs to
        address: Payee address
        amount: Amount in minimal units
        status: 'submitted' or 'failed'
        timestamp: When the receipt was last updated (unix timestamp)
        error: Failure reason (None unless failed)
    """
    tx_hash: str
    round_id: int
    address: str
    amount: int
    status: str  # 'submitted', 'failed'
    timestamp: int = 0
    error: Optional[str] = None

    def __post_init__(self):
        if self.timestamp == 0:
            self.timestamp = int(time.time())

    def to_dict(self) -> dict:
        """Convert receipt to dictionary for API response."""
        return {
            "tx_hash": self.tx_hash,
            "round_id": self.round_id,
            "address": self.address,
            "amount": self.amount,
            "status": self.status,
            "timestamp": self.timestamp,
            "error": self.error,
        }


class PayoutReceiptStore:
    """
    In-memory store for payout receipts.

    Thread-safe (read from RPC threads) with cleanup of the oldest receipts.
    """

    def __init__(self, max_receipts: int = 10000):
        self.receipts: Dict[str, PayoutReceipt] = {}
        self.max_receipts = max_receipts
        self.lock = RLock()

    def mark_submitted(self, tx_hash: str, round_id: int, address: str, amount: int) -> PayoutReceipt:
        return self._put(PayoutReceipt(
            tx_hash=tx_hash,
            round_id=round_id,
            address=address,
            amount=amount,
            status='submitted',
        ))

    def mark_failed(self, tx_hash: str, round_id: int, address: str, amount: int, error: str) -> PayoutReceipt:
        return self._put(PayoutReceipt(
            tx_hash=tx_hash,
            round_id=round_id,
            address=address,
            amount=amount,
            status='failed',
            error=error,
        ))

    def _put(self, receipt: PayoutReceipt) -> PayoutReceipt:
        with self.lock:
            self.receipts[receipt.tx_hash] = receipt
            if len(self.receipts) > self.max_receipts:
                self._cleanup_old_receipts()
        logger.debug(f"Payout receipt {receipt.tx_hash[:16]}... {receipt.status}")
        return receipt

    def get(self, tx_hash: str) -> Optional[PayoutReceipt]:
        with self.lock:
            return self.receipts.get(tx_hash)

    def for_round(self, round_id: int) -> List[PayoutReceipt]:
        with self.lock:
            return [r for r in self.receipts.values() if r.round_id == round_id]

    def failed(self) -> List[PayoutReceipt]:
        with self.lock:
            return [r for r in self.receipts.values() if r.status == 'failed']

    def _cleanup_old_receipts(self) -> None:
        """
        Remove oldest receipts to stay under max_receipts limit.

        Removes 10% of oldest receipts when limit is exceeded.
        """
        num_to_remove = max(1, len(self.receipts) // 10)

        sorted_receipts = sorted(
            self.receipts.items(),
            key=lambda x: x[1].timestamp
        )

        for tx_hash, _ in sorted_receipts[:num_to_remove]:
            del self.receipts[tx_hash]

        logger.info(f"Cleaned up {num_to_remove} old payout receipts (total: {len(self.receipts)})")
