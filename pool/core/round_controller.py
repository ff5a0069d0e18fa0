import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from protocol.types.block import BlockTemplate
from protocol.types.tx import Transaction
from protocol.types.share import ShareSubmission
from protocol.types.common import (
    RoundState, ShareClass, ShareOutcome, PoolMessageType,
    InvalidTransaction, InvalidShare, RoundClosed, RoundStateError,
)
from protocol.config.economic_model import RewardConfig
from .chain import ChainInterface
from .ledger import ContributionLedger
from .rewards import RewardDistributor, Payout
from .txqueue import PendingTransactions
from ..consensus.share_validator import ShareValidator
from ..p2p.transport import Transport
from ..p2p.protocol import NewPoolBlockPayload, SubmitTxPayload
from ..observability.metrics import (
    shares_total, rounds_total, blocks_found_total, undistributed_units_total,
)

logger = logging.getLogger(__name__)


@dataclass
class RoundSummary:
    """What happened in a finalized round."""
    round_id: int
    template_id: str
    winner: str
    proof: int
    contributions: Dict[str, int]
    payouts: List[Payout]
    dust: int = 0
    undistributed: int = 0
    block_announced: bool = True
    failed_payouts: List[str] = field(default_factory=list)   # payee addresses

    @property
    def total_shares(self) -> int:
        return sum(self.contributions.values())

    def to_dict(self) -> dict:
        return {
            "round_id": self.round_id,
            "template_id": self.template_id,
            "winner": self.winner,
            "proof": self.proof,
            "total_shares": self.total_shares,
            "contributions": dict(self.contributions),
            "payouts": [
                {"address": p.address, "amount": p.amount, "shares": p.shares, "is_operator": p.is_operator}
                for p in self.payouts
            ],
            "dust": self.dust,
            "undistributed": self.undistributed,
            "block_announced": self.block_announced,
            "failed_payouts": list(self.failed_payouts),
        }


class RoundController:
    """
    Pool operator: owns the current block template and its round.

    Worker responses arrive through `submit_share`, which only enqueues. A
    single consumer (`run`) takes submissions off the inbox one at a time and
    calls `handle_share`, so moving a round from OPEN to FINALIZING, taking the
    ledger snapshot and paying out happen with no other share in between.
    """

    def __init__(self,
                 chain: ChainInterface,
                 transport: Transport,
                 operator_address: str,
                 share_leading_zero_bits: int,
                 reward_config: Optional[RewardConfig] = None,
                 distributor: Optional[RewardDistributor] = None,
                 pending: Optional[PendingTransactions] = None,
                 max_pending_tx: int = 100_000,
                 inbox_max_size: int = 10_000,
                 max_history: int = 1000):
        self.chain = chain
        self.transport = transport
        self.operator_address = operator_address
        self.validator = ShareValidator(chain, share_leading_zero_bits)
        self.distributor = distributor or RewardDistributor(operator_address, chain, reward_config)
        self.pending = pending or PendingTransactions(max_pending_tx)
        self.max_history = max_history

        self.round_id = 0
        self.template: Optional[BlockTemplate] = None
        self.ledger: Optional[ContributionLedger] = None
        self.history: List[RoundSummary] = []

        self.inbox: asyncio.Queue = asyncio.Queue(maxsize=inbox_max_size)
        self.running = False

        self.transport.on_message(PoolMessageType.SHARE_FOUND, self.on_share_message)
        self.transport.on_message(PoolMessageType.SUBMIT_TX, self.on_tx_message)

    @property
    def state(self) -> RoundState:
        if self.ledger is None:
            return RoundState.CLOSED
        return self.ledger.state

    # --- Rounds ---

    def start_new_round(self) -> BlockTemplate:
        """
        Open the next round: drain pending transactions into a fresh template,
        reset the ledger and broadcast the template once.
        """
        if self.state != RoundState.CLOSED:
            raise RoundStateError(f"Round {self.round_id} is still {self.state.value}")

        head = self.chain.current_head()
        txs = self.pending.drain()

        round_id = self.round_id + 1
        try:
            template = self.chain.build_template(head, txs, round_id, self.operator_address)
        except Exception:
            self.pending.restore(txs)
            raise

        self.round_id = round_id
        self.template = template
        self.ledger = ContributionLedger(round_id)

        logger.info(
            f"Round {round_id}: sending block {template.chain_length} "
            f"({template.template_id()[:8]}, {len(txs)} tx) to pool miners."
        )
        try:
            payload = NewPoolBlockPayload(template=template.model_dump())
            self.transport.broadcast(PoolMessageType.NEW_POOL_BLOCK, payload.model_dump())
        except Exception as e:
            logger.error(f"Round {round_id}: template broadcast failed: {e}")

        return template

    def queue_transaction(self, tx: Union[Transaction, Dict[str, Any]]) -> bool:
        """
        Queue a transaction for the next round's template.
        Returns True if queued, False if already pending.
        Raises InvalidTransaction for malformed input.
        """
        try:
            return self.pending.add(tx)
        except InvalidTransaction as e:
            logger.warning(f"Rejected transaction: {e}")
            raise

    # --- Shares ---

    def submit_share(self, submission: ShareSubmission) -> bool:
        """Enqueue a worker's submission. Never blocks; returns False if the inbox is full."""
        try:
            self.inbox.put_nowait(submission)
            return True
        except asyncio.QueueFull:
            logger.warning(f"Share inbox full, dropping share from {submission.worker_address}")
            shares_total.labels(result="dropped").inc()
            return False

    def handle_share(self, submission: ShareSubmission) -> ShareOutcome:
        """
        Process one submission. Only the inbox consumer calls this.

        Stale and invalid shares are logged and dropped; the worker gets no
        credit and no error.
        """
        worker = submission.worker_address
        candidate = submission.candidate

        # A round was finalized but the next one failed to open
        if self.round_id > 0 and self.state == RoundState.CLOSED:
            self._open_next_round()

        if self.ledger is None or self.state != RoundState.OPEN or candidate.round_id != self.round_id:
            err = RoundClosed(
                f"share from {worker} for round {candidate.round_id}; "
                f"round {self.round_id} is {self.state.value}"
            )
            logger.info(f"Stale share dropped: {err}")
            shares_total.labels(result="stale").inc()
            return ShareOutcome.STALE

        try:
            share_class = self.validator.validate(candidate, self.template)
            count = self.ledger.record_share(worker, submission.share_id())
        except InvalidShare as e:
            logger.warning(f"Invalid share from {worker}: {e.reason}")
            shares_total.labels(result="rejected").inc()
            return ShareOutcome.REJECTED

        shares_total.labels(result="accepted").inc()
        logger.debug(f"Round {self.round_id}: share from {worker} accepted ({count} total)")

        if share_class == ShareClass.FULL_PROOF:
            logger.info(f"Mining pool found proof for block {candidate.chain_length}: {candidate.proof}")
            self._finalize(submission)
            return ShareOutcome.BLOCK_FOUND

        return ShareOutcome.ACCEPTED

    def _finalize(self, submission: ShareSubmission) -> Optional[RoundSummary]:
        """
        Settle the round a full proof just won, then open the next one.

        A failure while settling is logged. The ledger is closed and the next
        round opened either way.
        """
        ledger = self.ledger
        ledger.lock()

        summary = None
        try:
            summary = self._settle(ledger, submission)
        except Exception as e:
            logger.error(f"Round {ledger.round_id}: finalization failed: {e}", exc_info=True)
        finally:
            if ledger.state == RoundState.FINALIZING:
                ledger.close()

        self._open_next_round()
        return summary

    def _settle(self, ledger: ContributionLedger, submission: ShareSubmission) -> RoundSummary:
        candidate = submission.candidate

        # The winning proof is the only field of a broadcast template that may change
        self.template.proof = candidate.proof

        announced = True
        try:
            self.chain.announce_block(candidate)
        except Exception as e:
            announced = False
            logger.error(f"Round {ledger.round_id}: announcing block failed: {e}")

        contributions = ledger.snapshot()
        payouts = self.distributor.compute_payouts(contributions)
        report = self.distributor.emit_payout_transactions(payouts, round_id=ledger.round_id)
        ledger.close()

        summary = RoundSummary(
            round_id=ledger.round_id,
            template_id=self.template.template_id(),
            winner=submission.worker_address,
            proof=candidate.proof,
            contributions=dict(contributions),
            payouts=payouts,
            dust=self.distributor.last_dust,
            undistributed=self.distributor.last_undistributed,
            block_announced=announced,
            failed_payouts=[f.address for f in report.failed],
        )
        self.history.append(summary)
        if len(self.history) > self.max_history:
            self.history = self.history[-self.max_history:]

        rounds_total.inc()
        blocks_found_total.inc()
        if summary.undistributed:
            undistributed_units_total.inc(summary.undistributed)

        logger.info(
            f"Round {summary.round_id} closed: {summary.total_shares} share(s) from "
            f"{len(summary.contributions)} worker(s), {len(report.submitted)} payout(s) posted, "
            f"{len(report.failed)} failed"
        )

        return summary

    def _open_next_round(self) -> bool:
        try:
            self.start_new_round()
            return True
        except Exception as e:
            logger.error(f"Could not open round {self.round_id + 1}, retrying on next share: {e}")
            return False

    # --- Inbox consumer ---

    async def run(self):
        """Single consumer of the share inbox."""
        self.running = True
        if self.state == RoundState.CLOSED:
            self.start_new_round()

        logger.info("Round controller started")
        while self.running:
            submission = await self.inbox.get()
            try:
                if submission is None:
                    continue
                self.handle_share(submission)
            except Exception as e:
                logger.error(f"Error handling share: {e}", exc_info=True)
            finally:
                self.inbox.task_done()
        logger.info("Round controller stopped")

    def stop(self):
        self.running = False
        try:
            self.inbox.put_nowait(None)  # wake the consumer
        except asyncio.QueueFull:
            pass

    def drain_inbox(self) -> List[ShareOutcome]:
        """Process everything currently queued, in arrival order."""
        outcomes = []
        while not self.inbox.empty():
            submission = self.inbox.get_nowait()
            try:
                if submission is not None:
                    outcomes.append(self.handle_share(submission))
            finally:
                self.inbox.task_done()
        return outcomes

    # --- Transport handlers ---

    def on_share_message(self, payload: Dict[str, Any]) -> None:
        try:
            submission = ShareSubmission.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Malformed share message dropped: {e.error_count()} error(s)")
            shares_total.labels(result="malformed").inc()
            return
        self.submit_share(submission)

    def on_tx_message(self, payload: Dict[str, Any]) -> None:
        try:
            message = SubmitTxPayload.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Malformed transaction message dropped: {e.error_count()} error(s)")
            return
        try:
            self.queue_transaction(message.tx)
        except InvalidTransaction:
            pass  # already logged

    # --- Queries ---

    def get_round(self, round_id: int) -> Optional[RoundSummary]:
        for summary in reversed(self.history):
            if summary.round_id == round_id:
                return summary
        return None

    def status(self) -> dict:
        return {
            "round_id": self.round_id,
            "state": self.state.value,
            "template_id": self.template.template_id() if self.template else None,
            "chain_length": self.template.chain_length if self.template else None,
            "template_tx_count": len(self.template.transactions) if self.template else 0,
            "pending_tx_count": self.pending.size(),
            "round_shares": self.ledger.total_shares if self.ledger else 0,
            "round_workers": len(self.ledger) if self.ledger else 0,
            "rounds_completed": len(self.history),
            "inbox_size": self.inbox.qsize(),
        }
