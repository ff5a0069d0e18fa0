from enum import Enum


class RoundState(str, Enum):
    OPEN = "OPEN"               # Template broadcast, accepting shares
    FINALIZING = "FINALIZING"   # Full proof found, payouts being computed
    CLOSED = "CLOSED"           # Payouts posted, next round not yet open


class ShareClass(str, Enum):
    REJECTED = "REJECTED"
    SHARE = "SHARE"             # Meets the pool's easy target only
    FULL_PROOF = "FULL_PROOF"   # Meets the network target (also a share)


class ShareOutcome(str, Enum):
    ACCEPTED = "accepted"
    BLOCK_FOUND = "block_found"
    REJECTED = "rejected"
    STALE = "stale"


class PoolMessageType(str, Enum):
    NEW_POOL_BLOCK = "NEW_POOL_BLOCK"
    SHARE_FOUND = "SHARE_FOUND"
    SUBMIT_TX = "SUBMIT_TX"


class ProtocolError(Exception):
    pass


class InvalidTransaction(ProtocolError):
    pass


class PoolError(ProtocolError):
    pass


class RoundClosed(PoolError):
    """A share arrived for a round that is not OPEN."""


class RoundStateError(PoolError):
    """A ledger operation was attempted in the wrong round state."""


class InvalidShare(PoolError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class DuplicateShare(InvalidShare):
    pass


class PayoutSubmissionFailed(PoolError):
    def __init__(self, address: str, amount: int, reason: str):
        super().__init__(f"payout of {amount} to {address} failed: {reason}")
        self.address = address
        self.amount = amount
        self.reason = reason
