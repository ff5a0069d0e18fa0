from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from ..crypto.hash import sha256_hex


class Transaction(BaseModel):
    from_address: str = ""
    to_address: str                 # recipient
    amount: int                     # in minimal units (10^-6 gold)
    fee: int = 0
    nonce: int = 0
    payload: Dict[str, Any] = Field(default_factory=dict)  # Extra data, not hashed

    def hash(self) -> str:
        payload_str = (
            self.from_address
            + "|" + self.to_address
            + "|" + str(self.amount)
            + "|" + str(self.fee)
            + "|" + str(self.nonce)
        )
        return sha256_hex(payload_str.encode("utf-8"))

    @property
    def hash_hex(self) -> str:
        """Returns hash as hex string (for compatibility)."""
        return self.hash()

    def validation_error(self) -> Optional[str]:
        """
        Stateless well-formedness check.

        Returns None when the transaction is well formed, otherwise a short reason.
        """
        if not self.to_address or not self.to_address.strip():
            return "missing_recipient"
        if self.amount < 0:
            return "negative_amount"
        if self.fee < 0:
            return "negative_fee"
        if self.nonce < 0:
            return "negative_nonce"
        return None
