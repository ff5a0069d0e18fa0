from protocol.types.block import BlockTemplate
from protocol.types.common import ShareClass, InvalidShare
from protocol.config.params import POW_BASE_TARGET
from ..core.chain import ChainInterface


class ShareValidator:
    """
    Classifies candidate blocks against the pool's share target and the
    network's full target.

    Stateless: the result depends only on the candidate and the template it
    claims to solve, so the operator and a worker's self-check always agree.
    """

    def __init__(self, chain: ChainInterface, share_leading_zero_bits: int):
        self.chain = chain
        self.share_target = POW_BASE_TARGET >> share_leading_zero_bits
        self.full_target = chain.full_difficulty_threshold()
        if self.share_target <= self.full_target:
            raise ValueError(
                f"Share target must be looser than the network target "
                f"({self.share_target:#x} <= {self.full_target:#x})"
            )

    def validate(self, candidate: BlockTemplate, template: BlockTemplate) -> ShareClass:
        """
        Returns SHARE or FULL_PROOF.
        Raises InvalidShare with the reason on failure.
        """
        # 1. Same work unit as the template
        if candidate.round_id != template.round_id:
            raise InvalidShare(f"round mismatch: expected {template.round_id}, got {candidate.round_id}")

        if candidate.previous_block_id != template.previous_block_id:
            raise InvalidShare(
                f"previous_block_id mismatch: expected {template.previous_block_id[:8]}, "
                f"got {candidate.previous_block_id[:8]}"
            )

        if candidate.chain_length != template.chain_length:
            raise InvalidShare(
                f"chain_length mismatch: expected {template.chain_length}, got {candidate.chain_length}"
            )

        if candidate.reward_address != template.reward_address:
            raise InvalidShare("reward_address does not pay the pool")

        if candidate.tx_ids != template.tx_ids:
            raise InvalidShare("transaction list differs from template")

        # 2. Structure, as the chain sees it
        if not self.chain.validate_block_structure(candidate):
            raise InvalidShare("block fails structural validation")

        # 3. Proof
        if candidate.proof is None:
            raise InvalidShare("missing proof")

        value = self.chain.proof_value(candidate)
        if value >= self.share_target:
            raise InvalidShare("proof does not meet share target")

        if value < self.full_target:
            return ShareClass.FULL_PROOF
        return ShareClass.SHARE

    def classify(self, candidate: BlockTemplate, template: BlockTemplate) -> ShareClass:
        try:
            return self.validate(candidate, template)
        except InvalidShare:
            return ShareClass.REJECTED
