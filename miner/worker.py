# MIT License
# Copyright (c) 2025 Hashborn

"""
Pool Worker (client side)

The worker-side half of the share contract. The nonce search itself belongs
to the worker's mining loop and is not implemented here; this module turns a
found proof into a ShareSubmission, after checking it with the same
ShareValidator the pool operator uses, so a worker never sends a share the
pool would refuse.
"""

import logging
from typing import Any, Dict, Optional

from protocol.types.block import BlockTemplate
from protocol.types.share import ShareSubmission
from protocol.types.common import ShareClass
from pool.consensus.share_validator import ShareValidator
from pool.p2p.protocol import NewPoolBlockPayload

logger = logging.getLogger(__name__)


class PoolWorker:
    """
    Tracks the template the pool last broadcast and packages proofs for it.
    """

    def __init__(self, address: str, validator: ShareValidator):
        """
        Args:
            address: Address credited for this worker's shares
            validator: Share checker shared with the pool operator
        """
        self.address = address
        self.validator = validator
        self.template: Optional[BlockTemplate] = None

    def on_new_template(self, payload: Dict[str, Any]) -> BlockTemplate:
        """Handle a NEW_POOL_BLOCK payload; previous work is abandoned."""
        message = NewPoolBlockPayload.model_validate(payload)
        self.template = BlockTemplate.model_validate(message.template)
        logger.debug(f"{self.address}: new template for round {self.template.round_id}")
        return self.template

    def check_candidate(self, candidate: BlockTemplate) -> ShareClass:
        if self.template is None:
            return ShareClass.REJECTED
        return self.validator.classify(candidate, self.template)

    def make_submission(self, proof: int) -> Optional[ShareSubmission]:
        """
        Returns a ShareSubmission for `proof` on the current template, or None
        if the proof would not be accepted as a share.
        """
        if self.template is None:
            return None

        candidate = self.template.with_proof(proof)
        share_class = self.check_candidate(candidate)
        if share_class == ShareClass.REJECTED:
            return None

        if share_class == ShareClass.FULL_PROOF:
            logger.info(f"{self.address}: found full proof {proof} for round {candidate.round_id}")
        return ShareSubmission(worker_address=self.address, candidate=candidate)
