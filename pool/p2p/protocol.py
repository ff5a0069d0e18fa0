from pydantic import BaseModel
from typing import Dict, Any
from protocol.types.common import PoolMessageType


class PoolMessage(BaseModel):
    type: PoolMessageType
    payload: Dict[str, Any]

class NewPoolBlockPayload(BaseModel):
    template: Dict[str, Any]    # Serialized BlockTemplate

class SubmitTxPayload(BaseModel):
    tx: Dict[str, Any]          # Serialized Transaction

# SHARE_FOUND carries a serialized ShareSubmission as its payload
