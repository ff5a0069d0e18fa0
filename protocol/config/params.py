# MIT License
# Copyright (c) 2025 Hashborn

import os
from typing import Dict

# Global Constants
DENOM = "gold"

# Proof targets use the leading-zero-bits convention: target = POW_BASE_TARGET >> bits,
# and a proof is valid when its value is strictly below the target.
POW_BASE_TARGET = 2**256 - 1

class PoolConfig:
    def __init__(self,
                 profile_id: str,
                 pow_leading_zero_bits: int,
                 share_leading_zero_bits: int,
                 operator_address: str,
                 max_pending_tx: int = 500,
                 inbox_max_size: int = 10_000,
                 pool_host: str = "0.0.0.0",
                 pool_port: int = 9333,
                 rpc_host: str = "0.0.0.0",
                 rpc_port: int = 8333):
        self.profile_id = profile_id
        self.pow_leading_zero_bits = pow_leading_zero_bits
        self.share_leading_zero_bits = share_leading_zero_bits
        self.operator_address = operator_address
        self.max_pending_tx = max_pending_tx
        self.inbox_max_size = inbox_max_size
        self.pool_host = pool_host
        self.pool_port = pool_port
        self.rpc_host = rpc_host
        self.rpc_port = rpc_port

    @property
    def full_target(self) -> int:
        return POW_BASE_TARGET >> self.pow_leading_zero_bits

    @property
    def share_target(self) -> int:
        return POW_BASE_TARGET >> self.share_leading_zero_bits

    def validate(self) -> None:
        """Raises ValueError if the profile is unusable."""
        if self.share_leading_zero_bits < 0 or self.pow_leading_zero_bits < 0:
            raise ValueError("leading zero bits must be non-negative")
        if self.share_leading_zero_bits >= self.pow_leading_zero_bits:
            raise ValueError(
                f"share difficulty ({self.share_leading_zero_bits} bits) must be easier than "
                f"network difficulty ({self.pow_leading_zero_bits} bits)"
            )
        if not self.operator_address:
            raise ValueError("operator_address is required")
        if self.max_pending_tx <= 0:
            raise ValueError("max_pending_tx must be positive")

POOL_PROFILES: Dict[str, PoolConfig] = {
    "devnet": PoolConfig(
        profile_id="devnet",
        pow_leading_zero_bits=12,
        share_leading_zero_bits=4,
        operator_address="pool-operator",
        max_pending_tx=500,
    ),
    "testnet": PoolConfig(
        profile_id="testnet",
        pow_leading_zero_bits=20,
        share_leading_zero_bits=10,
        operator_address="pool-operator",
        max_pending_tx=2000,
    ),
}

def get_pool_config(profile_id: str) -> PoolConfig:
    if profile_id not in POOL_PROFILES:
        raise ValueError(f"Unknown pool profile: {profile_id} (known: {', '.join(POOL_PROFILES)})")
    return POOL_PROFILES[profile_id]

# Selected via PROPPOOL_PROFILE, devnet by default
CURRENT_POOL = get_pool_config(os.environ.get("PROPPOOL_PROFILE", "devnet"))
