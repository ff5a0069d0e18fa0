# MIT License
# Copyright (c) 2025 Hashborn

"""
PropPool Economic Model
Single source of truth for the pool's reward policy.

Proportional (PROP) payout:
- The pool operator keeps a fixed cut of every block reward
- The remainder is split among workers by their share count in the round
- Dust from integer division is never burned; it goes to a payee (see DustPolicy)
"""

from dataclasses import dataclass
from enum import Enum

DECIMALS = 10**6    # 1 gold = 10^6 minimal units


class DustPolicy(str, Enum):
    LAST_PAYEE = "last_payee"   # remainder added to the last worker in ledger order
    OPERATOR = "operator"       # remainder added to the operator's cut


@dataclass
class RewardConfig:
    """Reward parameters for the pool (whole-coin amounts)."""

    total_reward: int = 25              # Coinbase reward per block found
    operator_cut: int = 5               # Kept by the operator before splitting
    dust_policy: DustPolicy = DustPolicy.LAST_PAYEE

    def validate(self) -> None:
        if self.total_reward < 0 or self.operator_cut < 0:
            raise ValueError("Rewards must be non-negative")
        if self.operator_cut > self.total_reward:
            raise ValueError(
                f"operator_cut ({self.operator_cut}) exceeds total_reward ({self.total_reward})"
            )

    @property
    def total_reward_units(self) -> int:
        return self.total_reward * DECIMALS

    @property
    def operator_cut_units(self) -> int:
        return self.operator_cut * DECIMALS

    @property
    def remaining_units(self) -> int:
        """Amount split among workers."""
        return self.total_reward_units - self.operator_cut_units


REWARD_CONFIG = RewardConfig()
