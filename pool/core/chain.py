import abc
import logging
import threading
from typing import Dict, List, Tuple

from protocol.types.block import BlockReference, BlockTemplate
from protocol.types.tx import Transaction
from protocol.crypto.hash import hash_to_int
from protocol.config.params import POW_BASE_TARGET

logger = logging.getLogger(__name__)

GENESIS_ID = "0" * 64


class ChainInterface(abc.ABC):
    """
    What the pool operator needs from the underlying blockchain.

    Block serialization, the proof function and transaction posting all live
    behind this interface.
    """

    @abc.abstractmethod
    def current_head(self) -> BlockReference:
        ...

    @abc.abstractmethod
    def build_template(self, head: BlockReference, transactions: List[Transaction],
                       round_id: int, reward_address: str) -> BlockTemplate:
        ...

    @abc.abstractmethod
    def submit_transaction(self, tx: Transaction) -> Tuple[bool, str]:
        """Posts a transaction. Returns (accepted, reason)."""
        ...

    @abc.abstractmethod
    def full_difficulty_threshold(self) -> int:
        """Network target: a block is valid when proof_value(block) < threshold."""
        ...

    @abc.abstractmethod
    def validate_block_structure(self, block: BlockTemplate) -> bool:
        ...

    @abc.abstractmethod
    def proof_value(self, block: BlockTemplate) -> int:
        ...

    @abc.abstractmethod
    def announce_block(self, block: BlockTemplate) -> None:
        """Publishes a solved block to the network."""
        ...


class InMemoryChain(ChainInterface):
    """
    Reference chain collaborator kept entirely in memory.

    Blocks are appended when announced with a valid proof, and posted
    transactions are applied to balances immediately.
    """

    def __init__(self, pow_leading_zero_bits: int, coinbase_reward: int = 0):
        self.pow_leading_zero_bits = pow_leading_zero_bits
        self.coinbase_reward = coinbase_reward
        self.blocks: List[BlockTemplate] = []
        self.balances: Dict[str, int] = {}
        self.posted_txs: List[Transaction] = []
        self._lock = threading.Lock()

    @property
    def height(self) -> int:
        return len(self.blocks)

    @property
    def last_block_id(self) -> str:
        if not self.blocks:
            return GENESIS_ID
        return self.block_id(self.blocks[-1])

    @staticmethod
    def block_id(block: BlockTemplate) -> str:
        return format(hash_to_int(block.header_string().encode("utf-8")), "064x")

    def current_head(self) -> BlockReference:
        with self._lock:
            return BlockReference(block_id=self.last_block_id, chain_length=self.height)

    def build_template(self, head: BlockReference, transactions: List[Transaction],
                       round_id: int, reward_address: str) -> BlockTemplate:
        return BlockTemplate(
            round_id=round_id,
            previous_block_id=head.block_id,
            chain_length=head.chain_length + 1,
            reward_address=reward_address,
            transactions=list(transactions),
        )

    def submit_transaction(self, tx: Transaction) -> Tuple[bool, str]:
        error = tx.validation_error()
        if error:
            return False, error
        with self._lock:
            if tx.from_address:
                available = self.balances.get(tx.from_address, 0)
                if available < tx.amount + tx.fee:
                    return False, f"insufficient_balance: {available} < {tx.amount + tx.fee}"
                self.balances[tx.from_address] = available - tx.amount - tx.fee
            self.posted_txs.append(tx)
            self.balances[tx.to_address] = self.balances.get(tx.to_address, 0) + tx.amount
        logger.debug(f"Posted tx {tx.hash_hex[:8]}: {tx.amount} -> {tx.to_address}")
        return True, "posted"

    def full_difficulty_threshold(self) -> int:
        return POW_BASE_TARGET >> self.pow_leading_zero_bits

    def validate_block_structure(self, block: BlockTemplate) -> bool:
        if block.chain_length < 1 or not block.previous_block_id:
            return False
        if not block.reward_address:
            return False
        seen = set()
        for tx in block.transactions:
            if tx.validation_error():
                return False
            tx_id = tx.hash()
            if tx_id in seen:
                return False
            seen.add(tx_id)
        return True

    def proof_value(self, block: BlockTemplate) -> int:
        return hash_to_int(block.header_string().encode("utf-8"))

    def announce_block(self, block: BlockTemplate) -> None:
        if block.proof is None:
            raise ValueError("Cannot announce a block without a proof")
        with self._lock:
            if block.previous_block_id != self.last_block_id:
                raise ValueError(
                    f"Invalid previous_block_id: expected {self.last_block_id[:8]}, "
                    f"got {block.previous_block_id[:8]}"
                )
            if self.proof_value(block) >= self.full_difficulty_threshold():
                raise ValueError("Block proof does not meet network difficulty")
            self.blocks.append(block)
            if self.coinbase_reward:
                self.balances[block.reward_address] = (
                    self.balances.get(block.reward_address, 0) + self.coinbase_reward
                )
        logger.info(f"Block {block.chain_length} accepted: {self.block_id(block)[:8]}")

    def balance_of(self, address: str) -> int:
        return self.balances.get(address, 0)
