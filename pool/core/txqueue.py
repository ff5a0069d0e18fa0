from typing import Any, Dict, List, Union
import threading
import logging

from pydantic import ValidationError

from protocol.types.tx import Transaction
from protocol.types.common import InvalidTransaction

logger = logging.getLogger(__name__)


class PendingTransactions:
    """
    Transactions waiting for the next block template.

    Keyed by transaction hash so a resubmitted transaction is only queued once.
    External submitters may call `add` from any thread; the round controller
    takes everything out with `drain`, which is atomic with respect to `add`.
    """

    def __init__(self, max_size: int = 100000):
        self.transactions: Dict[str, Transaction] = {}  # tx_hash -> Transaction
        self.max_size = max_size
        self._lock = threading.Lock()

    @staticmethod
    def normalize(tx: Union[Transaction, Dict[str, Any]]) -> Transaction:
        """Turns a dict or Transaction into a well-formed Transaction, or raises InvalidTransaction."""
        if isinstance(tx, dict):
            try:
                tx = Transaction.model_validate(tx)
            except ValidationError as e:
                raise InvalidTransaction(f"malformed transaction: {e.error_count()} error(s)") from e
        elif not isinstance(tx, Transaction):
            raise InvalidTransaction(f"unsupported transaction type: {type(tx).__name__}")

        reason = tx.validation_error()
        if reason:
            raise InvalidTransaction(reason)
        return tx

    def add(self, tx: Union[Transaction, Dict[str, Any]]) -> bool:
        """
        Queues a transaction.
        Returns True if newly queued, False if it was already pending.
        Raises InvalidTransaction if the transaction is malformed or the queue is full.
        """
        tx = self.normalize(tx)
        tx_hash = tx.hash_hex

        with self._lock:
            if tx_hash in self.transactions:
                logger.debug(f"Tx {tx_hash[:8]} already pending")
                return False

            if len(self.transactions) >= self.max_size:
                logger.warning("Pending transaction queue full, rejecting transaction")
                raise InvalidTransaction("queue_full")

            self.transactions[tx_hash] = tx

        logger.info(f"Tx queued for next block: {tx_hash[:8]}...")
        return True

    def drain(self) -> List[Transaction]:
        """Removes and returns every pending transaction, in submission order."""
        with self._lock:
            drained = list(self.transactions.values())
            self.transactions = {}
        return drained

    def restore(self, txs: List[Transaction]) -> None:
        """
        Puts drained transactions back ahead of anything queued since, e.g.
        when the template they were drained for could not be built.
        Not subject to max_size: they were already admitted once.
        """
        with self._lock:
            restored = {tx.hash_hex: tx for tx in txs}
            restored.update(self.transactions)
            self.transactions = restored
        if txs:
            logger.info(f"Restored {len(txs)} tx(s) to the pending queue")

    def contains(self, tx_hash: str) -> bool:
        with self._lock:
            return tx_hash in self.transactions

    def size(self) -> int:
        with self._lock:
            return len(self.transactions)
