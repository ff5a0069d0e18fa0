"""
Per-round contribution accounting.

One ContributionLedger exists per round. It is created OPEN, locked when a
full proof arrives (FINALIZING), snapshotted exactly once for the reward
distributor, then CLOSED. Only the round controller's single share consumer
mutates it, so it carries no lock.
"""
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Set
import logging

from protocol.types.common import RoundState, RoundClosed, RoundStateError, DuplicateShare

logger = logging.getLogger(__name__)


class ContributionLedger:
    def __init__(self, round_id: int):
        self.round_id = round_id
        self.state = RoundState.OPEN
        self._counts: Dict[str, int] = {}      # worker_address -> accepted shares (first-share order)
        self._share_ids: Set[str] = set()
        self._snapshot_taken = False

    def record_share(self, worker_address: str, share_id: Optional[str] = None) -> int:
        """
        Credits one share to worker_address in this round.

        Args:
            worker_address: Address of the worker who found the share
            share_id: Identity of the share; a repeated id is refused

        Returns:
            The worker's new share count

        Raises:
            RoundClosed: the round is no longer OPEN
            DuplicateShare: share_id was already credited this round
        """
        if self.state != RoundState.OPEN:
            raise RoundClosed(f"Round {self.round_id} is {self.state.value}")

        if share_id is not None:
            if share_id in self._share_ids:
                raise DuplicateShare(f"share already counted in round {self.round_id}")
            self._share_ids.add(share_id)

        count = self._counts.get(worker_address, 0) + 1
        self._counts[worker_address] = count
        logger.debug(f"Round {self.round_id}: {worker_address} now has {count} share(s)")
        return count

    def lock(self) -> None:
        """OPEN -> FINALIZING. No share can be recorded afterwards."""
        if self.state != RoundState.OPEN:
            raise RoundStateError(f"Cannot lock round {self.round_id} in state {self.state.value}")
        self.state = RoundState.FINALIZING

    def close(self) -> None:
        """FINALIZING -> CLOSED."""
        if self.state != RoundState.FINALIZING:
            raise RoundStateError(f"Cannot close round {self.round_id} in state {self.state.value}")
        self.state = RoundState.CLOSED

    def snapshot(self) -> Mapping[str, int]:
        """Returns the final, read-only tally. Allowed once, while FINALIZING."""
        if self.state != RoundState.FINALIZING:
            raise RoundStateError(
                f"Snapshot of round {self.round_id} requires FINALIZING, state is {self.state.value}"
            )
        if self._snapshot_taken:
            raise RoundStateError(f"Ledger for round {self.round_id} was already consumed")
        self._snapshot_taken = True
        return MappingProxyType(dict(self._counts))

    def counts(self) -> Mapping[str, int]:
        """Read-only live view, for status reporting."""
        return MappingProxyType(self._counts)

    @property
    def total_shares(self) -> int:
        return sum(self._counts.values())

    def __len__(self) -> int:
        return len(self._counts)

    def __contains__(self, worker_address: str) -> bool:
        return worker_address in self._counts
