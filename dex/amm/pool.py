"""Exchange pool: reserves, liquidity shares and swaps for one token pair.

The pool custodies both tokens of its pair in their ledgers and tracks the
reserves it is willing to trade against. Reserves only change through
add_liquidity, remove_liquidity and swap, each of which runs under the
pool's own lock and follows the same order:

1. validate and compute the complete outcome without touching state
2. move tokens through the ledgers, unwinding earlier moves on failure
3. commit reserves and share balances

so a rejected call leaves no trace.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum

import structlog

from dex.amm.constant_product import ConstantProduct
from dex.config import DEFAULT_POOL_CONFIG, PoolConfig, RatioPolicy
from dex.errors import (
    InsufficientAllowance,
    InsufficientLiquidity,
    InsufficientShares,
    InvalidAssetPair,
    InvariantViolation,
    RatioMismatch,
    SlippageExceeded,
    TransferFailed,
    ZeroAmount,
)
from dex.ledger import TokenLedger
from dex.models.types import DEAD_ADDRESS, normalize_address, sort_tokens
from dex.safe_int import S

logger = structlog.get_logger()


class PoolState(str, Enum):
    EMPTY = "empty"  # no outstanding shares, zero reserves
    ACTIVE = "active"


@dataclass(frozen=True)
class PoolSnapshot:
    """Consistent read-only view of a pool."""

    address: str
    token0: str
    token1: str
    reserve0: int
    reserve1: int
    total_supply: int
    state: PoolState
    fee_numerator: int
    fee_denominator: int


class ExchangePool:
    """Constant product pool for one canonical token pair.

    Args:
        address: The pool's own account in both ledgers
        token_a: Ledger of one pair token
        token_b: Ledger of the other pair token
        config: Fee, minimum liquidity and ratio policy
    """

    def __init__(
        self,
        address: str,
        token_a: TokenLedger,
        token_b: TokenLedger,
        config: PoolConfig = DEFAULT_POOL_CONFIG,
    ) -> None:
        self.address = normalize_address(address, validate=True)
        try:
            token0, token1 = sort_tokens(token_a.address, token_b.address)
        except ValueError as err:
            raise InvalidAssetPair(str(err)) from err
        self.token0 = token0
        self.token1 = token1
        self._ledgers: dict[str, TokenLedger] = {
            normalize_address(token_a.address): token_a,
            normalize_address(token_b.address): token_b,
        }
        self.config = config
        self.math = ConstantProduct(config.fee_numerator, config.fee_denominator)

        self._reserve0 = 0
        self._reserve1 = 0
        self._total_supply = 0
        self._shares: dict[str, int] = defaultdict(int)
        self._share_allowances: dict[tuple[str, str], int] = defaultdict(int)
        # Reentrant so share transfers can run inside other pool operations
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return (
            f"ExchangePool({self.address[-8:]}, reserves=({self._reserve0}, {self._reserve1}), "
            f"supply={self._total_supply})"
        )

    # --- Read-only views ---

    @property
    def reserve0(self) -> int:
        return self._reserve0

    @property
    def reserve1(self) -> int:
        return self._reserve1

    @property
    def total_supply(self) -> int:
        return self._total_supply

    @property
    def state(self) -> PoolState:
        return PoolState.ACTIVE if self._total_supply > 0 else PoolState.EMPTY

    @property
    def lock(self) -> threading.RLock:
        """The pool's mutual-exclusion lock, for callers composing several pool calls."""
        return self._lock

    @property
    def ledger0(self) -> TokenLedger:
        return self._ledgers[self.token0]

    @property
    def ledger1(self) -> TokenLedger:
        return self._ledgers[self.token1]

    def liquidity_of(self, account: str) -> int:
        return self._shares.get(normalize_address(account), 0)

    def share_allowance(self, owner: str, spender: str) -> int:
        return self._share_allowances.get(
            (normalize_address(owner), normalize_address(spender)), 0
        )

    def has_token(self, token: str) -> bool:
        return normalize_address(token) in self._ledgers

    def get_reserves(self, token_in: str) -> tuple[int, int]:
        """Get reserves ordered as (reserve_in, reserve_out)."""
        token_in_norm = normalize_address(token_in)
        with self._lock:
            if token_in_norm == self.token0:
                return self._reserve0, self._reserve1
            elif token_in_norm == self.token1:
                return self._reserve1, self._reserve0
        raise InvalidAssetPair(f"Token {token_in} not in pool {self.address}")

    def get_token_out(self, token_in: str) -> str:
        """Get the output token for a given input token."""
        token_in_norm = normalize_address(token_in)
        if token_in_norm == self.token0:
            return self.token1
        elif token_in_norm == self.token1:
            return self.token0
        raise InvalidAssetPair(f"Token {token_in} not in pool {self.address}")

    def quote_amount_out(self, amount_in: int, token_in: str) -> int:
        """Output a swap of amount_in would receive right now (0 if impossible)."""
        reserve_in, reserve_out = self.get_reserves(token_in)
        return self.math.get_amount_out(amount_in, reserve_in, reserve_out)

    def quote_amount_in(self, amount_out: int, token_in: str) -> int | None:
        """Input needed to receive amount_out right now, or None if unreachable."""
        reserve_in, reserve_out = self.get_reserves(token_in)
        return self.math.get_amount_in(amount_out, reserve_in, reserve_out)

    def snapshot(self) -> PoolSnapshot:
        with self._lock:
            return PoolSnapshot(
                address=self.address,
                token0=self.token0,
                token1=self.token1,
                reserve0=self._reserve0,
                reserve1=self._reserve1,
                total_supply=self._total_supply,
                state=self.state,
                fee_numerator=self.config.fee_numerator,
                fee_denominator=self.config.fee_denominator,
            )

    # --- Liquidity ---

    def add_liquidity(
        self,
        sender: str,
        amount0: int,
        amount1: int,
        to: str | None = None,
        amount0_min: int = 0,
        amount1_min: int = 0,
    ) -> int:
        """Deposit both tokens and mint liquidity shares.

        The first deposit sets the price and mints isqrt(amount0 * amount1)
        shares. Later deposits are taken at the current reserve ratio; under
        the adjust policy the larger side is reduced to its ratio-implied
        amount and the remainder is simply never pulled.

        Args:
            sender: Account the tokens are pulled from (must have approved the pool)
            amount0: Maximum token0 to deposit
            amount1: Maximum token1 to deposit
            to: Recipient of the minted shares (defaults to sender)
            amount0_min: Minimum token0 actually deposited
            amount1_min: Minimum token1 actually deposited

        Returns:
            Shares minted to the recipient

        Raises:
            ZeroAmount, RatioMismatch, SlippageExceeded, InsufficientLiquidity,
            InsufficientAllowance
        """
        if amount0 <= 0 or amount1 <= 0:
            raise ZeroAmount(f"Deposit amounts must be positive, got ({amount0}, {amount1})")
        sender_norm = normalize_address(sender, validate=True)
        to_norm = normalize_address(to, validate=True) if to is not None else sender_norm

        with self._lock:
            used0, used1 = self._deposit_amounts(amount0, amount1)
            if used0 < amount0_min or used1 < amount1_min:
                raise SlippageExceeded(
                    f"Deposit ({used0}, {used1}) below minimum ({amount0_min}, {amount1_min})"
                )
            minted, locked = self._shares_for_deposit(amount0, used0, used1)
            new_reserve0 = (S(self._reserve0) + S(used0)).to_uint256()
            new_reserve1 = (S(self._reserve1) + S(used1)).to_uint256()
            new_supply = (S(self._total_supply) + S(minted) + S(locked)).to_uint256()

            self._check_pull(self.token0, sender_norm, used0)
            self._check_pull(self.token1, sender_norm, used1)
            self._pull(self.token0, sender_norm, used0)
            try:
                self._pull(self.token1, sender_norm, used1)
            except InsufficientAllowance:
                self._push(self.token0, sender_norm, used0)
                raise

            self._reserve0 = new_reserve0
            self._reserve1 = new_reserve1
            self._total_supply = new_supply
            if locked:
                self._shares[DEAD_ADDRESS] += locked
            self._shares[to_norm] += minted

        logger.debug(
            "liquidity_added",
            pool=self.address[-8:],
            provider=to_norm[-8:],
            amount0=used0,
            amount1=used1,
            shares=minted,
            locked=locked,
        )
        return minted

    def preview_add_liquidity(self, amount0: int, amount1: int) -> tuple[int, int, int]:
        """(used0, used1, shares) a deposit would produce right now.

        Raises the same errors add_liquidity would, without moving tokens.
        Hold `lock` across the preview and the deposit to keep them consistent.
        """
        if amount0 <= 0 or amount1 <= 0:
            raise ZeroAmount(f"Deposit amounts must be positive, got ({amount0}, {amount1})")
        with self._lock:
            used0, used1 = self._deposit_amounts(amount0, amount1)
            minted, _ = self._shares_for_deposit(amount0, used0, used1)
        return used0, used1, minted

    def _deposit_amounts(self, amount0: int, amount1: int) -> tuple[int, int]:
        """Amounts actually taken from a deposit. Caller holds the lock."""
        if self._total_supply == 0:
            return amount0, amount1

        implied1 = self.math.quote(amount0, self._reserve0, self._reserve1)
        if implied1 <= amount1:
            used = (amount0, implied1)
        else:
            used = (self.math.quote(amount1, self._reserve1, self._reserve0), amount1)

        if self.config.ratio_policy is RatioPolicy.REJECT and used != (amount0, amount1):
            raise RatioMismatch(
                f"Deposit ({amount0}, {amount1}) does not match reserve ratio "
                f"{self._reserve0}:{self._reserve1}"
            )
        if used[0] == 0 or used[1] == 0:
            raise InsufficientLiquidity(f"Deposit ({amount0}, {amount1}) too small for reserves")
        return used

    def _shares_for_deposit(self, amount0: int, used0: int, used1: int) -> tuple[int, int]:
        """(shares to mint for the provider, shares to lock). Caller holds the lock.

        In an active pool the mint is measured on the side that was not
        reduced to the reserve ratio: token0 when it was taken in full.
        """
        if self._total_supply == 0:
            liquidity = self.math.initial_liquidity(used0, used1)
            locked = self.config.minimum_liquidity
            if liquidity <= locked:
                raise InsufficientLiquidity(
                    f"Initial liquidity {liquidity} does not exceed locked minimum {locked}"
                )
            return liquidity - locked, locked

        if used0 == amount0:
            minted = self.math.liquidity_for(used0, self._reserve0, self._total_supply)
        else:
            minted = self.math.liquidity_for(used1, self._reserve1, self._total_supply)
        if minted <= 0:
            raise InsufficientLiquidity("Deposit too small to mint any shares")
        return minted, 0

    def remove_liquidity(
        self,
        sender: str,
        shares: int,
        to: str | None = None,
        amount0_min: int = 0,
        amount1_min: int = 0,
    ) -> tuple[int, int]:
        """Burn shares and pay out the proportional part of both reserves.

        Payouts round down, so any remainder stays in the pool; a small burn
        may pay 0 on one or both sides. Burning the entire supply pays out
        both reserves exactly and returns the pool to the empty state.

        Returns:
            (amount0, amount1) paid to the recipient

        Raises:
            ZeroAmount, InsufficientShares, SlippageExceeded
        """
        if shares <= 0:
            raise ZeroAmount(f"Share amount must be positive, got {shares}")
        sender_norm = normalize_address(sender, validate=True)
        to_norm = normalize_address(to, validate=True) if to is not None else sender_norm

        with self._lock:
            balance = self._shares.get(sender_norm, 0)
            if balance < shares:
                raise InsufficientShares(f"{sender_norm} holds {balance} shares, needs {shares}")

            amount0, amount1 = self.math.amounts_for(
                shares, self._reserve0, self._reserve1, self._total_supply
            )
            if amount0 < amount0_min or amount1 < amount1_min:
                raise SlippageExceeded(
                    f"Payout ({amount0}, {amount1}) below minimum ({amount0_min}, {amount1_min})"
                )
            new_reserve0 = (S(self._reserve0) - S(amount0)).value
            new_reserve1 = (S(self._reserve1) - S(amount1)).value
            new_supply = (S(self._total_supply) - S(shares)).value
            new_balance = (S(balance) - S(shares)).value

            self._require_custody(self.token0, amount0)
            self._require_custody(self.token1, amount1)
            self._push(self.token0, to_norm, amount0)
            self._push(self.token1, to_norm, amount1)

            self._reserve0 = new_reserve0
            self._reserve1 = new_reserve1
            self._total_supply = new_supply
            self._set_shares(sender_norm, new_balance)

        logger.debug(
            "liquidity_removed",
            pool=self.address[-8:],
            provider=sender_norm[-8:],
            shares=shares,
            amount0=amount0,
            amount1=amount1,
            state=self.state.value,
        )
        return amount0, amount1

    # --- Swaps ---

    def swap(
        self,
        sender: str,
        amount_in: int,
        token_in: str,
        token_out: str,
        to: str | None = None,
        min_amount_out: int = 0,
    ) -> int:
        """Swap an exact input amount for as much of the other token as the curve gives.

        Args:
            sender: Account the input is pulled from (must have approved the pool)
            amount_in: Exact input amount
            token_in: Input token address
            token_out: Output token address
            to: Recipient of the output (defaults to sender)
            min_amount_out: Slippage bound on the output

        Returns:
            Output amount sent to the recipient

        Raises:
            InvalidAssetPair, ZeroAmount, InsufficientLiquidity, SlippageExceeded,
            InsufficientAllowance
        """
        token_in_norm = normalize_address(token_in)
        token_out_norm = normalize_address(token_out)
        if token_in_norm == token_out_norm or {token_in_norm, token_out_norm} != {
            self.token0,
            self.token1,
        }:
            raise InvalidAssetPair(
                f"Pool {self.address} trades {self.token0}/{self.token1}, "
                f"got {token_in} -> {token_out}"
            )
        if amount_in <= 0:
            raise ZeroAmount(f"Swap input must be positive, got {amount_in}")
        sender_norm = normalize_address(sender, validate=True)
        to_norm = normalize_address(to, validate=True) if to is not None else sender_norm

        with self._lock:
            if self.state is PoolState.EMPTY:
                raise InsufficientLiquidity(f"Pool {self.address} is empty")

            reserve_in, reserve_out = self.get_reserves(token_in_norm)
            amount_out = self.math.get_amount_out(amount_in, reserve_in, reserve_out)
            if amount_out == 0 or amount_out >= reserve_out:
                raise InsufficientLiquidity(
                    f"Swap of {amount_in} yields {amount_out} against reserve {reserve_out}"
                )
            if amount_out < min_amount_out:
                raise SlippageExceeded(f"Output {amount_out} below minimum {min_amount_out}")

            new_in = (S(reserve_in) + S(amount_in)).to_uint256()
            new_out = (S(reserve_out) - S(amount_out)).value
            if S(new_in) * S(new_out) < S(reserve_in) * S(reserve_out):
                raise InvariantViolation(
                    f"k would drop from {reserve_in * reserve_out} to {new_in * new_out}"
                )

            self._require_custody(token_out_norm, amount_out)
            self._check_pull(token_in_norm, sender_norm, amount_in)
            self._pull(token_in_norm, sender_norm, amount_in)
            self._push(token_out_norm, to_norm, amount_out)

            if token_in_norm == self.token0:
                self._reserve0, self._reserve1 = new_in, new_out
            else:
                self._reserve1, self._reserve0 = new_in, new_out

        logger.debug(
            "swap_executed",
            pool=self.address[-8:],
            token_in=token_in_norm[-8:],
            amount_in=amount_in,
            amount_out=amount_out,
        )
        return amount_out

    # --- Share token ---

    def approve(self, owner: str, spender: str, amount: int) -> None:
        """Let spender move up to amount of owner's shares."""
        if amount < 0:
            raise ZeroAmount(f"Allowance cannot be negative, got {amount}")
        key = (normalize_address(owner, validate=True), normalize_address(spender, validate=True))
        with self._lock:
            self._share_allowances[key] = amount

    def transfer_shares(self, sender: str, recipient: str, amount: int) -> None:
        if amount <= 0:
            raise ZeroAmount(f"Share transfer must be positive, got {amount}")
        sender_norm = normalize_address(sender, validate=True)
        recipient_norm = normalize_address(recipient, validate=True)
        with self._lock:
            self._move_shares(sender_norm, recipient_norm, amount)

    def transfer_shares_from(self, spender: str, owner: str, recipient: str, amount: int) -> None:
        """Move owner's shares on behalf of spender, consuming share allowance."""
        if amount <= 0:
            raise ZeroAmount(f"Share transfer must be positive, got {amount}")
        owner_norm = normalize_address(owner, validate=True)
        recipient_norm = normalize_address(recipient, validate=True)
        key = (owner_norm, normalize_address(spender, validate=True))
        with self._lock:
            allowed = self._share_allowances.get(key, 0)
            if allowed < amount:
                raise InsufficientAllowance(
                    f"Share allowance {allowed} < {amount} for spender {spender}"
                )
            self._move_shares(owner_norm, recipient_norm, amount)
            self._share_allowances[key] = allowed - amount

    def _move_shares(self, sender: str, recipient: str, amount: int) -> None:
        balance = self._shares.get(sender, 0)
        if balance < amount:
            raise InsufficientShares(f"{sender} holds {balance} shares, needs {amount}")
        self._set_shares(sender, balance - amount)
        self._shares[recipient] += amount

    def _set_shares(self, account: str, balance: int) -> None:
        if balance:
            self._shares[account] = balance
        else:
            self._shares.pop(account, None)

    # --- Custody ---

    def skim(self, to: str) -> tuple[int, int]:
        """Send tokens held above the reserves (direct donations) to `to`.

        Afterwards the pool's ledger balances equal its reserves again.
        """
        to_norm = normalize_address(to, validate=True)
        with self._lock:
            excess0 = self.ledger0.balance_of(self.address) - self._reserve0
            excess1 = self.ledger1.balance_of(self.address) - self._reserve1
            if excess0 > 0:
                self._push(self.token0, to_norm, excess0)
            if excess1 > 0:
                self._push(self.token1, to_norm, excess1)
        return max(excess0, 0), max(excess1, 0)

    def _check_pull(self, token: str, owner: str, amount: int) -> None:
        """Fail before any transfer if owner cannot cover a pull."""
        ledger = self._ledgers[token]
        allowed = ledger.allowance(owner, self.address)
        balance = ledger.balance_of(owner)
        if allowed < amount or balance < amount:
            raise InsufficientAllowance(
                f"Cannot pull {amount} of {token} from {owner}: "
                f"allowance {allowed}, balance {balance}"
            )

    def _pull(self, token: str, owner: str, amount: int) -> None:
        """Pull tokens from owner into pool custody via the owner's allowance."""
        result = self._ledgers[token].transfer_from(self.address, owner, self.address, amount)
        if result.is_error:
            logger.debug(
                "pull_failed",
                pool=self.address[-8:],
                token=token[-8:],
                owner=owner[-8:],
                amount=amount,
                error=result.describe(),
            )
            raise InsufficientAllowance(f"Pulling {amount} of {token} failed: {result.describe()}")

    def _push(self, token: str, to: str, amount: int) -> None:
        result = self._ledgers[token].transfer(self.address, to, amount)
        if result.is_error:
            raise TransferFailed(f"Sending {amount} of {token} failed: {result.describe()}")

    def _require_custody(self, token: str, amount: int) -> None:
        held = self._ledgers[token].balance_of(self.address)
        if held < amount:
            raise InsufficientLiquidity(f"Pool holds {held} of {token}, owes {amount}")


__all__ = ["ExchangePool", "PoolSnapshot", "PoolState"]
