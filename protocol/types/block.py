from pydantic import BaseModel
from typing import List, Optional
from .tx import Transaction
from ..crypto.hash import sha256_hex, merkle_root


class BlockReference(BaseModel):
    block_id: str               # hex hash of the chain head
    chain_length: int           # number of blocks up to and including the head


class BlockTemplate(BaseModel):
    round_id: int
    previous_block_id: str
    chain_length: int           # chain length once this block is appended
    reward_address: str         # coinbase goes to the pool operator
    transactions: List[Transaction]

    # Set by the worker that solved it; None on the broadcast template
    proof: Optional[int] = None

    def tx_root(self) -> str:
        hashes = [bytes.fromhex(tx.hash()) for tx in self.transactions]
        return merkle_root(hashes).hex()

    def template_id(self) -> str:
        # Identifies the work unit: every field except the proof
        payload = (
            str(self.round_id)
            + self.previous_block_id
            + str(self.chain_length)
            + self.reward_address
            + self.tx_root()
        )
        return sha256_hex(payload.encode("utf-8"))

    def header_string(self) -> str:
        proof = "" if self.proof is None else str(self.proof)
        return self.template_id() + ":" + proof

    def with_proof(self, proof: int) -> "BlockTemplate":
        return self.model_copy(update={"proof": proof}, deep=True)

    @property
    def tx_ids(self) -> List[str]:
        return [tx.hash() for tx in self.transactions]
