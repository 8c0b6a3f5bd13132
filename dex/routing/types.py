"""Result types returned by the router."""

from dataclasses import dataclass


@dataclass(frozen=True)
class LiquidityResult:
    """Outcome of adding or removing liquidity through the router.

    Amounts are in the caller's token order (token_a, token_b), not the
    pool's canonical order.
    """

    pair: str
    amount_a: int
    amount_b: int
    shares: int


@dataclass(frozen=True)
class SwapResult:
    """Outcome of a swap through the router."""

    pair: str
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int
