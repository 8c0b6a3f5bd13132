"""Pool configuration for the exchange."""

import os
from dataclasses import dataclass
from enum import Enum

from dex.constants import FEE_DENOMINATOR, FEE_NUMERATOR, MINIMUM_LIQUIDITY


class RatioPolicy(str, Enum):
    """What add_liquidity does with deposits that are out of the reserve ratio."""

    ADJUST = "adjust"  # Take the smaller ratio-implied amount, leave the rest with the caller
    REJECT = "reject"  # Raise RatioMismatch


@dataclass(frozen=True)
class PoolConfig:
    """Configuration shared by every pool a registry creates.

    Attributes:
        fee_numerator: Portion of the input that counts towards the swap
            (default: 997, i.e. a 0.3% fee). Equal to fee_denominator means no fee.
        fee_denominator: Fee base (default: 1000)
        minimum_liquidity: Shares permanently locked on the first deposit
            (default: 0, so a full withdrawal empties the pool)
        ratio_policy: Handling of out-of-ratio deposits into an active pool
    """

    fee_numerator: int = FEE_NUMERATOR
    fee_denominator: int = FEE_DENOMINATOR
    minimum_liquidity: int = MINIMUM_LIQUIDITY
    ratio_policy: RatioPolicy = RatioPolicy.ADJUST

    def __post_init__(self) -> None:
        if self.fee_denominator <= 0:
            raise ValueError(f"fee_denominator must be positive, got {self.fee_denominator}")
        if not 0 < self.fee_numerator <= self.fee_denominator:
            raise ValueError(
                f"fee_numerator must be in (0, {self.fee_denominator}], got {self.fee_numerator}"
            )
        if self.minimum_liquidity < 0:
            raise ValueError(f"minimum_liquidity cannot be negative, got {self.minimum_liquidity}")

    @property
    def fee_bps(self) -> int:
        """Swap fee in basis points (30 for the default 997/1000)."""
        return (self.fee_denominator - self.fee_numerator) * 10000 // self.fee_denominator

    @classmethod
    def from_env(cls) -> "PoolConfig":
        """Build a config from environment variables.

        - DEX_FEE_NUMERATOR (default: 997)
        - DEX_FEE_DENOMINATOR (default: 1000)
        - DEX_MINIMUM_LIQUIDITY (default: 0)
        - DEX_RATIO_POLICY: "adjust" or "reject" (default: adjust)
        """
        return cls(
            fee_numerator=int(os.environ.get("DEX_FEE_NUMERATOR", str(FEE_NUMERATOR))),
            fee_denominator=int(os.environ.get("DEX_FEE_DENOMINATOR", str(FEE_DENOMINATOR))),
            minimum_liquidity=int(os.environ.get("DEX_MINIMUM_LIQUIDITY", str(MINIMUM_LIQUIDITY))),
            ratio_policy=RatioPolicy(os.environ.get("DEX_RATIO_POLICY", "adjust").lower()),
        )


# Default configuration instance
DEFAULT_POOL_CONFIG = PoolConfig()
