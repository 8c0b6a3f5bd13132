"""Router: the user-facing façade of the exchange.

The router looks pools up in the pair registry, pulls the caller's tokens
(or shares) into its own custody through ledger allowances, and forwards
the call to the pool. It keeps no state of its own besides the registry
reference. Every forwarded call runs under the target pool's lock so the
router's temporary approvals can't interleave with another caller's, and
every failure hands back whatever was pulled before re-raising.
"""

from __future__ import annotations

import structlog

from dex.amm.pool import ExchangePool
from dex.constants import ROUTER_ADDRESS
from dex.errors import (
    DexError,
    InsufficientAllowance,
    InsufficientLiquidity,
    PairExists,
    PairNotFound,
    SlippageExceeded,
    TransferFailed,
    ZeroAmount,
)
from dex.ledger import TokenLedger
from dex.models.types import normalize_address
from dex.pools.registry import PairRegistry
from dex.routing.types import LiquidityResult, SwapResult

logger = structlog.get_logger()


class Router:
    """Convenience façade over the pair registry and its pools.

    Args:
        registry: Registry used to find (and optionally create) pools
        address: The router's own account in every ledger and pool
    """

    def __init__(self, registry: PairRegistry, address: str = ROUTER_ADDRESS) -> None:
        self.registry = registry
        self.address = normalize_address(address, validate=True)

    # --- Lookup ---

    def _pool(self, token_a: str, token_b: str) -> ExchangePool:
        pool = self.registry.get_pool(token_a, token_b)
        if pool is None:
            raise PairNotFound(f"No pool for {token_a}/{token_b}")
        return pool

    def get_amount_out(self, amount_in: int, token_in: str, token_out: str) -> int:
        """Quote the output of an exact-input swap (0 if the pool can't fill it)."""
        return self._pool(token_in, token_out).quote_amount_out(amount_in, token_in)

    def get_amount_in(self, amount_out: int, token_in: str, token_out: str) -> int | None:
        """Quote the input needed for an exact output (None if unreachable)."""
        return self._pool(token_in, token_out).quote_amount_in(amount_out, token_in)

    # --- Liquidity ---

    def add_liquidity(
        self,
        caller: str,
        token_a: str,
        token_b: str,
        amount_a: int,
        amount_b: int,
        amount_a_min: int = 0,
        amount_b_min: int = 0,
        to: str | None = None,
        create_pair: bool = False,
    ) -> LiquidityResult:
        """Deposit into the pool for (token_a, token_b), minting shares to the caller.

        Only the amounts the pool will take at its current ratio are pulled
        from the caller, who must have approved the router for them.

        Args:
            create_pair: Create the pool first if the pair is not registered.
                Without it a missing pair raises PairNotFound.

        Raises:
            PairNotFound, ZeroAmount, InsufficientAllowance, SlippageExceeded,
            and any pool error
        """
        if amount_a <= 0 or amount_b <= 0:
            raise ZeroAmount(f"Deposit amounts must be positive, got ({amount_a}, {amount_b})")
        caller_norm = normalize_address(caller, validate=True)
        recipient = normalize_address(to, validate=True) if to is not None else caller_norm

        pool = self.registry.get_pool(token_a, token_b)
        if pool is None:
            if not create_pair:
                raise PairNotFound(f"No pool for {token_a}/{token_b}")
            try:
                self.registry.create_pair(token_a, token_b)
            except PairExists:
                # Another caller created it between lookup and creation
                pass
            pool = self._pool(token_a, token_b)

        a_is_0 = normalize_address(token_a) == pool.token0
        amount0, amount1 = (amount_a, amount_b) if a_is_0 else (amount_b, amount_a)

        with pool.lock:
            used0, used1, _ = pool.preview_add_liquidity(amount0, amount1)
            used_a, used_b = (used0, used1) if a_is_0 else (used1, used0)
            if used_a < amount_a_min or used_b < amount_b_min:
                raise SlippageExceeded(
                    f"Deposit ({used_a}, {used_b}) below minimum ({amount_a_min}, {amount_b_min})"
                )

            pulled = self._pull_all(
                caller_norm, [(pool.ledger0, used0), (pool.ledger1, used1)]
            )
            try:
                self._approve(pool.ledger0, pool.address, used0)
                self._approve(pool.ledger1, pool.address, used1)
                # Same amounts as the preview: under the lock the pool takes used0/used1
                shares = pool.add_liquidity(
                    self.address,
                    amount0,
                    amount1,
                    to=recipient,
                    amount0_min=used0,
                    amount1_min=used1,
                )
            except (DexError, ArithmeticError):
                self._approve(pool.ledger0, pool.address, 0)
                self._approve(pool.ledger1, pool.address, 0)
                self._refund(caller_norm, pulled)
                raise

        logger.debug(
            "router_liquidity_added",
            pair=pool.address[-8:],
            caller=caller_norm[-8:],
            amount_a=used_a,
            amount_b=used_b,
            shares=shares,
        )
        return LiquidityResult(pair=pool.address, amount_a=used_a, amount_b=used_b, shares=shares)

    def remove_liquidity(
        self,
        caller: str,
        token_a: str,
        token_b: str,
        shares: int,
        amount_a_min: int = 0,
        amount_b_min: int = 0,
        to: str | None = None,
    ) -> LiquidityResult:
        """Burn the caller's shares and pay both tokens out to the caller.

        The caller must have approved the router on the pool's share ledger
        (ExchangePool.approve) for at least `shares`.

        Raises:
            PairNotFound, ZeroAmount, InsufficientAllowance, InsufficientShares,
            SlippageExceeded
        """
        if shares <= 0:
            raise ZeroAmount(f"Share amount must be positive, got {shares}")
        caller_norm = normalize_address(caller, validate=True)
        recipient = normalize_address(to, validate=True) if to is not None else caller_norm
        pool = self._pool(token_a, token_b)

        a_is_0 = normalize_address(token_a) == pool.token0
        min0, min1 = (amount_a_min, amount_b_min) if a_is_0 else (amount_b_min, amount_a_min)

        with pool.lock:
            pool.transfer_shares_from(self.address, caller_norm, self.address, shares)
            try:
                amount0, amount1 = pool.remove_liquidity(
                    self.address, shares, to=recipient, amount0_min=min0, amount1_min=min1
                )
            except (DexError, ArithmeticError):
                pool.transfer_shares(self.address, caller_norm, shares)
                pool.approve(
                    caller_norm,
                    self.address,
                    pool.share_allowance(caller_norm, self.address) + shares,
                )
                raise

        amount_a, amount_b = (amount0, amount1) if a_is_0 else (amount1, amount0)
        logger.debug(
            "router_liquidity_removed",
            pair=pool.address[-8:],
            caller=caller_norm[-8:],
            shares=shares,
            amount_a=amount_a,
            amount_b=amount_b,
        )
        return LiquidityResult(pair=pool.address, amount_a=amount_a, amount_b=amount_b, shares=shares)

    # --- Swaps ---

    def swap(
        self,
        caller: str,
        amount_in: int,
        token_in: str,
        token_out: str,
        min_amount_out: int = 0,
        to: str | None = None,
    ) -> SwapResult:
        """Swap an exact input, sending the output to the caller (or `to`).

        Raises:
            PairNotFound, ZeroAmount, InsufficientAllowance, SlippageExceeded,
            InsufficientLiquidity, InvalidAssetPair
        """
        pool = self._pool(token_in, token_out)
        with pool.lock:
            amount_out = self._forward_swap(
                pool, caller, amount_in, token_in, token_out, min_amount_out, to
            )
        return SwapResult(
            pair=pool.address,
            token_in=normalize_address(token_in),
            token_out=normalize_address(token_out),
            amount_in=amount_in,
            amount_out=amount_out,
        )

    def swap_for_exact_output(
        self,
        caller: str,
        amount_out: int,
        token_in: str,
        token_out: str,
        max_amount_in: int,
        to: str | None = None,
    ) -> SwapResult:
        """Buy at least `amount_out`, paying no more than `max_amount_in`.

        Because of integer rounding the delivered output can exceed the
        requested amount by a few units.

        Raises:
            SlippageExceeded: If the required input exceeds max_amount_in
            InsufficientLiquidity: If the pool cannot deliver amount_out
        """
        if amount_out <= 0:
            raise ZeroAmount(f"Swap output must be positive, got {amount_out}")
        pool = self._pool(token_in, token_out)
        with pool.lock:
            amount_in = pool.quote_amount_in(amount_out, token_in)
            if amount_in is None:
                raise InsufficientLiquidity(f"Pool {pool.address} cannot deliver {amount_out}")
            if amount_in > max_amount_in:
                raise SlippageExceeded(f"Required input {amount_in} above maximum {max_amount_in}")
            delivered = self._forward_swap(
                pool, caller, amount_in, token_in, token_out, amount_out, to
            )
        return SwapResult(
            pair=pool.address,
            token_in=normalize_address(token_in),
            token_out=normalize_address(token_out),
            amount_in=amount_in,
            amount_out=delivered,
        )

    def _forward_swap(
        self,
        pool: ExchangePool,
        caller: str,
        amount_in: int,
        token_in: str,
        token_out: str,
        min_amount_out: int,
        to: str | None,
    ) -> int:
        """Pull the input into custody and swap through the pool. Caller holds pool.lock."""
        if amount_in <= 0:
            raise ZeroAmount(f"Swap input must be positive, got {amount_in}")
        caller_norm = normalize_address(caller, validate=True)
        recipient = normalize_address(to, validate=True) if to is not None else caller_norm
        ledger_in = pool.ledger0 if normalize_address(token_in) == pool.token0 else pool.ledger1

        # Rejections happen before any tokens move
        reserve_out = pool.get_reserves(token_in)[1]
        quoted = pool.quote_amount_out(amount_in, token_in)
        if quoted == 0 or quoted >= reserve_out:
            raise InsufficientLiquidity(
                f"Swap of {amount_in} yields {quoted} against reserve {reserve_out}"
            )
        if quoted < min_amount_out:
            raise SlippageExceeded(f"Output {quoted} below minimum {min_amount_out}")

        pulled = self._pull_all(caller_norm, [(ledger_in, amount_in)])
        try:
            self._approve(ledger_in, pool.address, amount_in)
            amount_out = pool.swap(
                self.address,
                amount_in,
                token_in,
                token_out,
                to=recipient,
                min_amount_out=min_amount_out,
            )
        except (DexError, ArithmeticError):
            self._approve(ledger_in, pool.address, 0)
            self._refund(caller_norm, pulled)
            raise

        logger.debug(
            "router_swap",
            pair=pool.address[-8:],
            caller=caller_norm[-8:],
            amount_in=amount_in,
            amount_out=amount_out,
        )
        return amount_out

    # --- Custody ---

    def _pull_all(
        self, caller: str, transfers: list[tuple[TokenLedger, int]]
    ) -> list[tuple[TokenLedger, int]]:
        """Pull each (ledger, amount) from caller; all or none."""
        for ledger, amount in transfers:
            allowed = ledger.allowance(caller, self.address)
            balance = ledger.balance_of(caller)
            if allowed < amount or balance < amount:
                raise InsufficientAllowance(
                    f"Router cannot pull {amount} of {ledger.address}: "
                    f"allowance {allowed}, balance {balance}"
                )

        pulled: list[tuple[TokenLedger, int]] = []
        for ledger, amount in transfers:
            result = ledger.transfer_from(self.address, caller, self.address, amount)
            if result.is_error:
                self._refund(caller, pulled)
                raise InsufficientAllowance(
                    f"Router could not pull {amount} of {ledger.address}: {result.describe()}"
                )
            pulled.append((ledger, amount))
        return pulled

    def _refund(self, caller: str, pulled: list[tuple[TokenLedger, int]]) -> None:
        for ledger, amount in pulled:
            result = ledger.transfer(self.address, caller, amount)
            if result.is_error:
                raise TransferFailed(
                    f"Refund of {amount} of {ledger.address} to {caller} failed: {result.describe()}"
                )

    def _approve(self, ledger: TokenLedger, spender: str, amount: int) -> None:
        result = ledger.approve(self.address, spender, amount)
        if result.is_error:
            raise TransferFailed(f"Router approval on {ledger.address} failed: {result.describe()}")


__all__ = ["Router"]
