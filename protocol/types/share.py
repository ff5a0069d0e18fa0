from pydantic import BaseModel
from .block import BlockTemplate


class ShareSubmission(BaseModel):
    """A worker's claim that `candidate` carries a proof meeting the share target."""
    worker_address: str
    candidate: BlockTemplate

    def share_id(self) -> str:
        # Same template + same proof is the same share, whoever sends it
        return self.candidate.header_string()
