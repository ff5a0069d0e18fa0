# MIT License
# Copyright (c) 2025 Hashborn

"""
Proportional (PROP) Reward Distribution

Splits a found block's reward among the workers who contributed shares to
the round that produced it.

Economic Model:
- Block reward: 25 gold
- Operator cut: 5 gold
- Remainder (20 gold): proportional to each worker's share count

Flow:
1. Round is finalized and its ledger snapshotted
2. Operator payout = operator_cut
3. remaining = total_reward - operator_cut
4. Each worker gets remaining * shares // total_shares (integer minimal units)
5. Dust (remainder from integer division) → last payee or operator (DustPolicy)
6. One payout transaction per payee; failures are isolated

PROP pays nothing until a block is found, which is safe for the operator but
leaves the pool open to pool hopping.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from protocol.types.tx import Transaction
from protocol.types.common import PayoutSubmissionFailed
from protocol.config.economic_model import RewardConfig, REWARD_CONFIG, DustPolicy, DECIMALS
from .chain import ChainInterface
from .payout_receipt import PayoutReceiptStore
from ..observability.metrics import payouts_total

logger = logging.getLogger(__name__)


@dataclass
class Payout:
    """One entry of a round's payout plan."""
    address: str
    amount: int             # minimal units
    shares: int = 0         # shares credited to this payee (0 for the operator)
    is_operator: bool = False


@dataclass
class PayoutReport:
    """Outcome of posting a payout plan."""
    round_id: int
    submitted: List[str] = field(default_factory=list)   # tx hashes
    failed: List[PayoutSubmissionFailed] = field(default_factory=list)

    @property
    def all_submitted(self) -> bool:
        return not self.failed


class RewardDistributor:
    """
    Computes and posts PROP payouts.

    Reward policy comes from RewardConfig at construction, never from module
    constants.
    """

    def __init__(
        self,
        operator_address: str,
        chain: ChainInterface,
        reward_config: Optional[RewardConfig] = None,
        receipts: Optional[PayoutReceiptStore] = None,
    ):
        """
        Args:
            operator_address: Address that receives the operator cut and funds worker payouts
            chain: Chain collaborator used to post payout transactions
            reward_config: Reward policy (defaults to 25 gold total, 5 gold cut)
            receipts: Store recording each payout's outcome
        """
        self.operator_address = operator_address
        self.chain = chain
        self.config = reward_config or REWARD_CONFIG
        self.config.validate()
        self.receipts = receipts or PayoutReceiptStore()
        self.last_undistributed = 0
        self.last_dust = 0
        self._next_nonce = 0     # operator account nonce for payout transactions

    def compute_payouts(
        self,
        ledger: Mapping[str, int],
        total_reward: Optional[int] = None,
        operator_cut: Optional[int] = None,
    ) -> List[Payout]:
        """
        Build the payout plan for a finalized round.

        Args:
            ledger: worker_address -> share count (iteration order = payout order)
            total_reward: Total to distribute (defaults to config, in minimal units)
            operator_cut: Operator's fixed cut (defaults to config, in minimal units)

        Returns:
            Operator payout first, then one payout per worker with a non-zero amount
        """
        if total_reward is None:
            total_reward = self.config.total_reward_units
        if operator_cut is None:
            operator_cut = self.config.operator_cut_units
        if operator_cut < 0 or total_reward < operator_cut:
            raise ValueError(f"Invalid reward split: total={total_reward}, cut={operator_cut}")

        remaining = total_reward - operator_cut
        operator = Payout(address=self.operator_address, amount=operator_cut, is_operator=True)
        self.last_undistributed = 0
        self.last_dust = 0

        total_shares = sum(ledger.values())
        if total_shares == 0:
            # No shares recorded: nothing to divide by, worker reward stays with nobody
            logger.warning(
                f"No shares recorded for round, {remaining} left undistributed "
                f"(operator still receives {operator_cut})"
            )
            self.last_undistributed = remaining
            return [operator]

        workers: List[Payout] = []
        distributed = 0
        for address, shares in ledger.items():
            if shares <= 0:
                continue
            # reward = remaining * shares / total_shares, floored
            amount = (remaining * shares) // total_shares
            workers.append(Payout(address=address, amount=amount, shares=shares))
            distributed += amount

        dust = remaining - distributed
        self.last_dust = dust
        if dust > 0:
            if self.config.dust_policy == DustPolicy.OPERATOR:
                operator.amount += dust
                logger.info(f"Reward dust {dust} assigned to operator")
            else:
                workers[-1].amount += dust
                logger.info(f"Reward dust {dust} assigned to last payee {workers[-1].address}")

        return [operator] + [p for p in workers if p.amount > 0]

    def emit_payout_transactions(self, payouts: List[Payout], round_id: int = 0) -> PayoutReport:
        """
        Post one transaction per payout from the operator's address.

        Each submission is independent: a failure is recorded and logged and the
        remaining payouts are still posted.
        """
        report = PayoutReport(round_id=round_id)

        for payout in payouts:
            tx = Transaction(
                from_address=self.operator_address,
                to_address=payout.address,
                amount=payout.amount,
                fee=0,
                nonce=self._next_nonce,
                payload={"round_id": round_id, "shares": payout.shares},
            )
            tx_hash = tx.hash_hex
            self._next_nonce += 1

            if payout.is_operator:
                logger.info(f"Paying operator {payout.address} {payout.amount / DECIMALS} gold.")
            else:
                logger.info(
                    f"Paying {payout.address} {payout.amount / DECIMALS} gold "
                    f"for their {payout.shares} share(s)."
                )

            try:
                accepted, reason = self.chain.submit_transaction(tx)
            except Exception as e:
                accepted, reason = False, str(e)

            if accepted:
                report.submitted.append(tx_hash)
                self.receipts.mark_submitted(tx_hash, round_id, payout.address, payout.amount)
                payouts_total.labels(status="submitted").inc()
            else:
                failure = PayoutSubmissionFailed(payout.address, payout.amount, reason)
                logger.error(f"Round {round_id}: {failure}")
                report.failed.append(failure)
                self.receipts.mark_failed(tx_hash, round_id, payout.address, payout.amount, reason)
                payouts_total.labels(status="failed").inc()

        return report
