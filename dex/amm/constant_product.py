"""Constant product AMM math.

The pool keeps x * y = k for its two reserves, retaining a proportional fee
on the input of every swap. All quantities are integers; every division
rounds in the pool's favour.
"""

from __future__ import annotations

from dex.constants import FEE_DENOMINATOR, FEE_NUMERATOR
from dex.safe_int import S


class ConstantProduct:
    """Constant product swap and liquidity math.

    Formula: amount_out = (amount_in * fn * reserve_out) / (reserve_in * fd + amount_in * fn)

    With the default fn/fd = 997/1000 the pool keeps 0.3% of every input.
    """

    def __init__(
        self,
        fee_numerator: int = FEE_NUMERATOR,
        fee_denominator: int = FEE_DENOMINATOR,
    ) -> None:
        self.fee_numerator = fee_numerator
        self.fee_denominator = fee_denominator

    def get_amount_out(self, amount_in: int, reserve_in: int, reserve_out: int) -> int:
        """Calculate output amount for an exact input.

        Args:
            amount_in: Input token amount
            reserve_in: Reserve of input token in pool
            reserve_out: Reserve of output token in pool

        Returns:
            Output token amount, rounded down. 0 for non-positive input or
            empty reserves.
        """
        if amount_in <= 0:
            return 0
        if reserve_in <= 0 or reserve_out <= 0:
            return 0

        amount_in_with_fee = S(amount_in) * S(self.fee_numerator)
        numerator = amount_in_with_fee * S(reserve_out)
        denominator = S(reserve_in) * S(self.fee_denominator) + amount_in_with_fee

        return (numerator // denominator).value

    def get_amount_in(self, amount_out: int, reserve_in: int, reserve_out: int) -> int | None:
        """Calculate required input for a desired output.

        Formula: amount_in = (res_in * out * fd) / ((res_out - out) * fn) + 1

        Returns:
            Required input amount (rounded up), 0 for non-positive output, or
            None when the output cannot be reached (empty pool or
            amount_out >= reserve_out).
        """
        if amount_out <= 0:
            return 0
        if reserve_in <= 0 or reserve_out <= 0:
            return None
        if amount_out >= reserve_out:
            return None

        numerator = S(reserve_in) * S(amount_out) * S(self.fee_denominator)
        denominator = (S(reserve_out) - S(amount_out)) * S(self.fee_numerator)

        return ((numerator // denominator) + S(1)).value

    @staticmethod
    def quote(amount_a: int, reserve_a: int, reserve_b: int) -> int:
        """Amount of B that matches amount_a at the current reserve ratio."""
        return (S(amount_a) * S(reserve_b) // S(reserve_a)).value

    @staticmethod
    def initial_liquidity(amount0: int, amount1: int) -> int:
        """Shares minted by the first deposit: floor(sqrt(amount0 * amount1))."""
        return (S(amount0) * S(amount1)).isqrt().value

    @staticmethod
    def liquidity_for(amount: int, reserve: int, total_supply: int) -> int:
        """Shares minted for a deposit into an active pool.

        Measured on the side whose amount was taken as given, not the side
        derived from the reserve ratio.
        """
        return (S(total_supply) * S(amount) // S(reserve)).value

    @staticmethod
    def amounts_for(
        shares: int, reserve0: int, reserve1: int, total_supply: int
    ) -> tuple[int, int]:
        """Reserves owed for burning shares, rounded down."""
        s = S(shares)
        return (
            (S(reserve0) * s // S(total_supply)).value,
            (S(reserve1) * s // S(total_supply)).value,
        )


# Default-fee instance
constant_product = ConstantProduct()


__all__ = ["ConstantProduct", "constant_product"]
