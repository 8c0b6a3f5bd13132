"""Tests for ExchangePool liquidity, swaps and share accounting."""

import math

import pytest

from dex.amm.constant_product import constant_product
from dex.amm.pool import ExchangePool, PoolState
from dex.config import PoolConfig, RatioPolicy
from dex.errors import (
    InsufficientAllowance,
    InsufficientLiquidity,
    InsufficientShares,
    InvalidAssetPair,
    RatioMismatch,
    SlippageExceeded,
    ZeroAmount,
)
from dex.ledger import MockERC20
from dex.models.types import DEAD_ADDRESS
from tests.helpers import (
    ALICE,
    BOB,
    E18,
    INITIAL_SUPPLY,
    OWNER,
    TOKEN_A,
    TOKEN_B,
    TOKEN_C,
    approve_pool,
    fund,
    make_exchange,
    make_pool,
    make_token,
    seed_pool,
)


def assert_reserves_backed(pool: ExchangePool) -> None:
    """Reserves equal what the pool actually holds in each ledger."""
    assert pool.ledger0.balance_of(pool.address) == pool.reserve0
    assert pool.ledger1.balance_of(pool.address) == pool.reserve1


def pool_with(config: PoolConfig) -> ExchangePool:
    """Fresh TokenA/TokenB pool under a non-default configuration."""
    exchange = make_exchange(config)
    make_token(exchange, TOKEN_A, "TKA")
    make_token(exchange, TOKEN_B, "TKB")
    return make_pool(exchange, TOKEN_A, TOKEN_B)


@pytest.fixture
def small_pool(pool: ExchangePool) -> ExchangePool:
    """Pool seeded with (1000, 500) base units, minting 707 shares."""
    seed_pool(pool, OWNER, 1000, 500)
    return pool


class TestPoolCreation:
    """Tests for pool construction."""

    def test_tokens_in_canonical_order(self, pool: ExchangePool):
        assert pool.token0 == TOKEN_A
        assert pool.token1 == TOKEN_B

    def test_new_pool_is_empty(self, pool: ExchangePool):
        assert pool.state == PoolState.EMPTY
        assert (pool.reserve0, pool.reserve1, pool.total_supply) == (0, 0, 0)

    def test_identical_tokens_rejected(self, token_a: MockERC20):
        with pytest.raises(InvalidAssetPair):
            ExchangePool("0x" + "99" * 20, token_a, token_a)

    def test_token_order_independent_of_arguments(
        self, token_a: MockERC20, token_b: MockERC20
    ):
        pool = ExchangePool("0x" + "99" * 20, token_b, token_a)
        assert (pool.token0, pool.token1) == (TOKEN_A, TOKEN_B)
        assert pool.ledger0 is token_a

    def test_snapshot(self, seeded_pool: ExchangePool):
        snapshot = seeded_pool.snapshot()
        assert snapshot.address == seeded_pool.address
        assert (snapshot.reserve0, snapshot.reserve1) == (1000 * E18, 500 * E18)
        assert snapshot.total_supply == seeded_pool.total_supply
        assert snapshot.state == PoolState.ACTIVE
        assert (snapshot.fee_numerator, snapshot.fee_denominator) == (997, 1000)


class TestAddLiquidity:
    """Tests for depositing into a pool."""

    def test_first_deposit_mints_geometric_mean(self, pool: ExchangePool):
        shares = seed_pool(pool, OWNER, 1000 * E18, 500 * E18)

        assert shares == math.isqrt(1000 * E18 * 500 * E18)
        assert pool.total_supply == shares
        assert pool.liquidity_of(OWNER) == shares
        assert (pool.reserve0, pool.reserve1) == (1000 * E18, 500 * E18)
        assert pool.state == PoolState.ACTIVE
        assert_reserves_backed(pool)

    def test_first_deposit_pulls_from_sender(
        self, seeded_pool: ExchangePool, token_a: MockERC20, token_b: MockERC20
    ):
        assert token_a.balance_of(OWNER) == INITIAL_SUPPLY - 1000 * E18
        assert token_b.balance_of(OWNER) == INITIAL_SUPPLY - 500 * E18

    def test_half_reserves_mint_half_supply(self, seeded_pool: ExchangePool):
        supply_before = seeded_pool.total_supply
        shares = seed_pool(seeded_pool, OWNER, 500 * E18, 250 * E18)

        assert shares == supply_before // 2
        assert (seeded_pool.reserve0, seeded_pool.reserve1) == (1500 * E18, 750 * E18)
        assert_reserves_backed(seeded_pool)

    def test_out_of_ratio_deposit_is_adjusted(self, small_pool: ExchangePool, token_b: MockERC20):
        """(100, 100) into 1000:500 takes (100, 50); the extra 50 stays with the sender."""
        balance_b = token_b.balance_of(OWNER)
        shares = seed_pool(small_pool, OWNER, 100, 100)

        assert shares == 70
        assert (small_pool.reserve0, small_pool.reserve1) == (1100, 550)
        assert token_b.balance_of(OWNER) == balance_b - 50
        assert_reserves_backed(small_pool)

    def test_adjusts_the_larger_side(self, small_pool: ExchangePool):
        """(100, 10) into 1000:500 takes (20, 10)."""
        shares = seed_pool(small_pool, OWNER, 100, 10)

        assert shares == 14
        assert (small_pool.reserve0, small_pool.reserve1) == (1020, 510)

    def test_mint_uses_side_taken_in_full(self, small_pool: ExchangePool):
        """(3, 100) takes (3, 1): shares are 707 * 3 // 1000 = 2, not 707 * 1 // 500 = 1."""
        shares = seed_pool(small_pool, OWNER, 3, 100)

        assert shares == 2
        assert (small_pool.reserve0, small_pool.reserve1) == (1003, 501)
        assert small_pool.total_supply == 709
        assert small_pool.preview_add_liquidity(3, 100) == (3, 1, 2)

    def test_preview_matches_deposit(self, small_pool: ExchangePool):
        preview = small_pool.preview_add_liquidity(100, 100)
        shares = seed_pool(small_pool, OWNER, 100, 100)
        assert preview == (100, 50, shares)

    def test_shares_to_recipient(self, pool: ExchangePool):
        approve_pool(pool, OWNER, 1000, 500)
        shares = pool.add_liquidity(OWNER, 1000, 500, to=ALICE)

        assert pool.liquidity_of(ALICE) == shares
        assert pool.liquidity_of(OWNER) == 0

    def test_zero_amount_rejected(self, pool: ExchangePool):
        with pytest.raises(ZeroAmount):
            pool.add_liquidity(OWNER, 0, 500)
        with pytest.raises(ZeroAmount):
            pool.add_liquidity(OWNER, 1000, 0)

    def test_without_approval_nothing_moves(
        self, pool: ExchangePool, token_a: MockERC20, token_b: MockERC20
    ):
        with pytest.raises(InsufficientAllowance):
            pool.add_liquidity(OWNER, 1000, 500)

        assert token_a.balance_of(OWNER) == INITIAL_SUPPLY
        assert token_b.balance_of(OWNER) == INITIAL_SUPPLY
        assert pool.state == PoolState.EMPTY

    def test_second_token_unapproved_leaves_first_untouched(
        self, pool: ExchangePool, token_a: MockERC20
    ):
        token_a.approve(OWNER, pool.address, 1000)

        with pytest.raises(InsufficientAllowance):
            pool.add_liquidity(OWNER, 1000, 500)

        assert token_a.balance_of(OWNER) == INITIAL_SUPPLY
        assert token_a.balance_of(pool.address) == 0
        assert token_a.allowance(OWNER, pool.address) == 1000
        assert pool.total_supply == 0

    def test_insufficient_balance_rejected(self, pool: ExchangePool, token_a: MockERC20):
        fund(token_a, ALICE, 10)
        approve_pool(pool, ALICE, 1000, 500)

        with pytest.raises(InsufficientAllowance):
            pool.add_liquidity(ALICE, 1000, 500)
        assert token_a.balance_of(ALICE) == 10

    def test_minimum_amount_enforced(self, small_pool: ExchangePool):
        approve_pool(small_pool, OWNER, 100, 100)
        with pytest.raises(SlippageExceeded):
            small_pool.add_liquidity(OWNER, 100, 100, amount1_min=60)
        assert (small_pool.reserve0, small_pool.reserve1) == (1000, 500)

    def test_dust_deposit_rejected(self, small_pool: ExchangePool):
        """(1, 1) into 1000:500 would contribute 0 of token1."""
        approve_pool(small_pool, OWNER, 1, 1)
        with pytest.raises(InsufficientLiquidity):
            small_pool.add_liquidity(OWNER, 1, 1)


class TestRatioPolicy:
    """Tests for the reject policy on out-of-ratio deposits."""

    def test_reject_policy_raises_on_mismatch(self):
        pool = pool_with(PoolConfig(ratio_policy=RatioPolicy.REJECT))
        seed_pool(pool, OWNER, 1000, 500)

        approve_pool(pool, OWNER, 100, 100)
        with pytest.raises(RatioMismatch):
            pool.add_liquidity(OWNER, 100, 100)
        assert (pool.reserve0, pool.reserve1) == (1000, 500)

    def test_reject_policy_accepts_exact_ratio(self):
        pool = pool_with(PoolConfig(ratio_policy=RatioPolicy.REJECT))
        seed_pool(pool, OWNER, 1000, 500)

        assert seed_pool(pool, OWNER, 100, 50) == 70

    def test_reject_policy_allows_any_first_deposit(self):
        pool = pool_with(PoolConfig(ratio_policy=RatioPolicy.REJECT))
        assert seed_pool(pool, OWNER, 7, 9_000) == math.isqrt(7 * 9_000)


class TestMinimumLiquidity:
    """Tests for permanently locked shares on the first deposit."""

    def test_first_deposit_locks_shares(self):
        pool = pool_with(PoolConfig(minimum_liquidity=1000))
        shares = seed_pool(pool, OWNER, 10**6, 10**6)

        assert shares == 10**6 - 1000
        assert pool.liquidity_of(DEAD_ADDRESS) == 1000
        assert pool.total_supply == 10**6

    def test_locked_shares_keep_pool_active(self):
        pool = pool_with(PoolConfig(minimum_liquidity=1000))
        shares = seed_pool(pool, OWNER, 10**6, 10**6)

        assert pool.remove_liquidity(OWNER, shares) == (999_000, 999_000)
        assert pool.state == PoolState.ACTIVE
        assert (pool.reserve0, pool.reserve1, pool.total_supply) == (1000, 1000, 1000)

    def test_deposit_below_minimum_rejected(self):
        pool = pool_with(PoolConfig(minimum_liquidity=1000))
        approve_pool(pool, OWNER, 10, 10)

        with pytest.raises(InsufficientLiquidity):
            pool.add_liquidity(OWNER, 10, 10)
        assert pool.ledger0.balance_of(OWNER) == INITIAL_SUPPLY


class TestRemoveLiquidity:
    """Tests for burning shares."""

    def test_full_withdrawal_returns_reserves(
        self, seeded_pool: ExchangePool, token_a: MockERC20, token_b: MockERC20
    ):
        shares = seeded_pool.liquidity_of(OWNER)
        amounts = seeded_pool.remove_liquidity(OWNER, shares)

        assert amounts == (1000 * E18, 500 * E18)
        assert (seeded_pool.reserve0, seeded_pool.reserve1) == (0, 0)
        assert seeded_pool.total_supply == 0
        assert seeded_pool.state == PoolState.EMPTY
        assert token_a.balance_of(OWNER) == INITIAL_SUPPLY
        assert token_b.balance_of(OWNER) == INITIAL_SUPPLY

    def test_partial_withdrawal_rounds_down(self, small_pool: ExchangePool):
        assert small_pool.remove_liquidity(OWNER, 100) == (141, 70)
        assert (small_pool.reserve0, small_pool.reserve1) == (859, 430)
        assert small_pool.total_supply == 607
        assert small_pool.liquidity_of(OWNER) == 607
        assert_reserves_backed(small_pool)

    def test_empty_pool_can_be_reseeded_at_new_price(self, seeded_pool: ExchangePool):
        seeded_pool.remove_liquidity(OWNER, seeded_pool.liquidity_of(OWNER))
        shares = seed_pool(seeded_pool, OWNER, 10 * E18, 40 * E18)

        assert shares == 20 * E18
        assert (seeded_pool.reserve0, seeded_pool.reserve1) == (10 * E18, 40 * E18)

    def test_payout_to_recipient(self, small_pool: ExchangePool, token_a: MockERC20):
        small_pool.remove_liquidity(OWNER, 707, to=BOB)
        assert token_a.balance_of(BOB) == 1000

    def test_more_than_held_rejected(self, small_pool: ExchangePool):
        with pytest.raises(InsufficientShares):
            small_pool.remove_liquidity(OWNER, 708)
        with pytest.raises(InsufficientShares):
            small_pool.remove_liquidity(ALICE, 1)
        assert small_pool.total_supply == 707

    def test_zero_shares_rejected(self, small_pool: ExchangePool):
        with pytest.raises(ZeroAmount):
            small_pool.remove_liquidity(OWNER, 0)

    def test_small_burn_keeps_remainder(self, small_pool: ExchangePool, token_b: MockERC20):
        """One share of 707 is worth (1, 0); the token1 remainder stays in the pool."""
        balance_b = token_b.balance_of(OWNER)

        assert small_pool.remove_liquidity(OWNER, 1) == (1, 0)
        assert (small_pool.reserve0, small_pool.reserve1) == (999, 500)
        assert small_pool.liquidity_of(OWNER) == small_pool.total_supply == 706
        assert token_b.balance_of(OWNER) == balance_b
        assert_reserves_backed(small_pool)

    def test_partial_exit_from_lopsided_pool(self, pool: ExchangePool):
        """Seeded (1, 1_000_000): half the shares pay nothing of the single token0 unit."""
        assert seed_pool(pool, OWNER, 1, 1_000_000) == 1000

        assert pool.remove_liquidity(OWNER, 500) == (0, 500_000)
        assert (pool.reserve0, pool.reserve1) == (1, 500_000)
        assert pool.remove_liquidity(OWNER, 500) == (1, 500_000)
        assert pool.state == PoolState.EMPTY
        assert_reserves_backed(pool)

    def test_minimum_payout_enforced(self, small_pool: ExchangePool, token_a: MockERC20):
        balance = token_a.balance_of(OWNER)
        with pytest.raises(SlippageExceeded):
            small_pool.remove_liquidity(OWNER, 100, amount0_min=142)
        assert token_a.balance_of(OWNER) == balance
        assert small_pool.liquidity_of(OWNER) == 707


class TestSwap:
    """Tests for exact-input swaps."""

    def test_swap_token0_for_token1(
        self, seeded_pool: ExchangePool, token_a: MockERC20, token_b: MockERC20
    ):
        amount_in = 10 * E18
        expected = constant_product.get_amount_out(amount_in, 1000 * E18, 500 * E18)
        balance_b = token_b.balance_of(OWNER)
        token_a.approve(OWNER, seeded_pool.address, amount_in)

        amount_out = seeded_pool.swap(OWNER, amount_in, TOKEN_A, TOKEN_B)

        assert amount_out == expected
        assert 0 < amount_out < 500 * E18 * amount_in // (1000 * E18 + amount_in)
        assert seeded_pool.reserve0 == 1010 * E18
        assert seeded_pool.reserve1 == 500 * E18 - amount_out
        assert token_b.balance_of(OWNER) == balance_b + amount_out
        assert_reserves_backed(seeded_pool)

    def test_swap_token1_for_token0(self, seeded_pool: ExchangePool, token_b: MockERC20):
        expected = constant_product.get_amount_out(5 * E18, 500 * E18, 1000 * E18)
        token_b.approve(OWNER, seeded_pool.address, 5 * E18)

        amount_out = seeded_pool.swap(OWNER, 5 * E18, TOKEN_B, TOKEN_A)

        assert amount_out == expected
        assert seeded_pool.reserve0 == 1000 * E18 - amount_out
        assert seeded_pool.reserve1 == 505 * E18

    def test_small_integer_swap(self, small_pool: ExchangePool, token_a: MockERC20):
        token_a.approve(OWNER, small_pool.address, 10)
        assert small_pool.swap(OWNER, 10, TOKEN_A, TOKEN_B) == 4
        assert (small_pool.reserve0, small_pool.reserve1) == (1010, 496)

    def test_quote_matches_swap(self, seeded_pool: ExchangePool, token_a: MockERC20):
        quote = seeded_pool.quote_amount_out(3 * E18, TOKEN_A)
        token_a.approve(OWNER, seeded_pool.address, 3 * E18)
        assert seeded_pool.swap(OWNER, 3 * E18, TOKEN_A, TOKEN_B) == quote

    def test_output_to_recipient(
        self, seeded_pool: ExchangePool, token_a: MockERC20, token_b: MockERC20
    ):
        token_a.approve(OWNER, seeded_pool.address, E18)
        amount_out = seeded_pool.swap(OWNER, E18, TOKEN_A, TOKEN_B, to=BOB)
        assert token_b.balance_of(BOB) == amount_out

    def test_product_grows_with_every_swap(
        self, seeded_pool: ExchangePool, token_a: MockERC20, token_b: MockERC20
    ):
        token_a.approve(OWNER, seeded_pool.address, INITIAL_SUPPLY)
        token_b.approve(OWNER, seeded_pool.address, INITIAL_SUPPLY)

        k = seeded_pool.reserve0 * seeded_pool.reserve1
        for i in range(10):
            if i % 2:
                seeded_pool.swap(OWNER, 3 * E18 + i, TOKEN_B, TOKEN_A)
            else:
                seeded_pool.swap(OWNER, 7 * E18 + i, TOKEN_A, TOKEN_B)
            new_k = seeded_pool.reserve0 * seeded_pool.reserve1
            assert new_k > k
            k = new_k
        assert_reserves_backed(seeded_pool)

    def test_product_never_drops_without_fee(self):
        pool = pool_with(PoolConfig(fee_numerator=1000, fee_denominator=1000))
        seed_pool(pool, OWNER, 1000 * E18, 500 * E18)
        pool.ledger0.approve(OWNER, pool.address, INITIAL_SUPPLY)
        pool.ledger1.approve(OWNER, pool.address, INITIAL_SUPPLY)

        k = pool.reserve0 * pool.reserve1
        for amount in (1, 7 * E18, 13, 2 * E18 + 1):
            pool.swap(OWNER, amount * 10, TOKEN_A, TOKEN_B)
            pool.swap(OWNER, amount, TOKEN_B, TOKEN_A)
            new_k = pool.reserve0 * pool.reserve1
            assert new_k >= k
            k = new_k

    def test_foreign_token_rejected(self, seeded_pool: ExchangePool):
        with pytest.raises(InvalidAssetPair):
            seeded_pool.swap(OWNER, E18, TOKEN_C, TOKEN_B)

    def test_same_token_rejected(self, seeded_pool: ExchangePool):
        with pytest.raises(InvalidAssetPair):
            seeded_pool.swap(OWNER, E18, TOKEN_A, TOKEN_A)

    def test_zero_input_rejected(self, seeded_pool: ExchangePool):
        with pytest.raises(ZeroAmount):
            seeded_pool.swap(OWNER, 0, TOKEN_A, TOKEN_B)

    def test_empty_pool_rejected(self, pool: ExchangePool, token_a: MockERC20):
        token_a.approve(OWNER, pool.address, E18)
        with pytest.raises(InsufficientLiquidity):
            pool.swap(OWNER, E18, TOKEN_A, TOKEN_B)

    def test_zero_output_rejected(self, seeded_pool: ExchangePool, token_a: MockERC20):
        """One base unit in yields nothing out at this price."""
        token_a.approve(OWNER, seeded_pool.address, 1)
        with pytest.raises(InsufficientLiquidity):
            seeded_pool.swap(OWNER, 1, TOKEN_A, TOKEN_B)

    def test_slippage_rejected_without_side_effects(
        self, seeded_pool: ExchangePool, token_a: MockERC20
    ):
        quote = seeded_pool.quote_amount_out(10 * E18, TOKEN_A)
        token_a.approve(OWNER, seeded_pool.address, 10 * E18)
        balance = token_a.balance_of(OWNER)

        with pytest.raises(SlippageExceeded):
            seeded_pool.swap(OWNER, 10 * E18, TOKEN_A, TOKEN_B, min_amount_out=quote + 1)

        assert token_a.balance_of(OWNER) == balance
        assert token_a.allowance(OWNER, seeded_pool.address) == 10 * E18
        assert (seeded_pool.reserve0, seeded_pool.reserve1) == (1000 * E18, 500 * E18)

    def test_unapproved_swap_rejected(self, seeded_pool: ExchangePool):
        with pytest.raises(InsufficientAllowance):
            seeded_pool.swap(OWNER, E18, TOKEN_A, TOKEN_B)
        assert (seeded_pool.reserve0, seeded_pool.reserve1) == (1000 * E18, 500 * E18)


class TestShareToken:
    """Tests for transferring and approving liquidity shares."""

    def test_transfer_shares(self, small_pool: ExchangePool):
        small_pool.transfer_shares(OWNER, ALICE, 300)

        assert small_pool.liquidity_of(OWNER) == 407
        assert small_pool.liquidity_of(ALICE) == 300
        assert small_pool.total_supply == 707

    def test_transferred_shares_can_be_burned(self, small_pool: ExchangePool, token_a: MockERC20):
        small_pool.transfer_shares(OWNER, ALICE, 707)
        amounts = small_pool.remove_liquidity(ALICE, 707)

        assert amounts == (1000, 500)
        assert token_a.balance_of(ALICE) == 1000

    def test_transfer_more_than_held_rejected(self, small_pool: ExchangePool):
        with pytest.raises(InsufficientShares):
            small_pool.transfer_shares(OWNER, ALICE, 708)

    def test_transfer_from_consumes_allowance(self, small_pool: ExchangePool):
        small_pool.approve(OWNER, BOB, 500)
        small_pool.transfer_shares_from(BOB, OWNER, BOB, 200)

        assert small_pool.liquidity_of(BOB) == 200
        assert small_pool.share_allowance(OWNER, BOB) == 300

    def test_transfer_from_without_allowance_rejected(self, small_pool: ExchangePool):
        small_pool.approve(OWNER, BOB, 100)
        with pytest.raises(InsufficientAllowance):
            small_pool.transfer_shares_from(BOB, OWNER, BOB, 101)
        assert small_pool.liquidity_of(OWNER) == 707

    def test_negative_allowance_rejected(self, small_pool: ExchangePool):
        with pytest.raises(ZeroAmount):
            small_pool.approve(OWNER, BOB, -1)


class TestSkim:
    """Tests for recovering tokens sent directly to the pool."""

    def test_skim_returns_donation(self, seeded_pool: ExchangePool, token_a: MockERC20):
        fund(token_a, seeded_pool.address, 5 * E18)

        assert seeded_pool.skim(BOB) == (5 * E18, 0)
        assert token_a.balance_of(BOB) == 5 * E18
        assert seeded_pool.reserve0 == 1000 * E18
        assert_reserves_backed(seeded_pool)

    def test_skim_without_donation(self, seeded_pool: ExchangePool):
        assert seeded_pool.skim(BOB) == (0, 0)
