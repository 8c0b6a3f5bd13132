"""Pytest configuration and fixtures."""

import pytest

from dex.amm.pool import ExchangePool
from dex.exchange import Exchange
from dex.ledger import MockERC20
from dex.pools.registry import PairRegistry
from dex.routing.router import Router
from tests.helpers import (
    E18,
    OWNER,
    TOKEN_A,
    TOKEN_B,
    make_exchange,
    make_pool,
    make_token,
    seed_pool,
)


@pytest.fixture
def exchange() -> Exchange:
    """A fresh exchange with the default pool configuration."""
    return make_exchange()


@pytest.fixture
def registry(exchange: Exchange) -> PairRegistry:
    return exchange.registry


@pytest.fixture
def router(exchange: Exchange) -> Router:
    return exchange.router


@pytest.fixture
def token_a(exchange: Exchange) -> MockERC20:
    """TokenA (TKA): 1,000,000 units minted to OWNER. Sorts as token0."""
    return make_token(exchange, TOKEN_A, "TKA")


@pytest.fixture
def token_b(exchange: Exchange) -> MockERC20:
    """TokenB (TKB): 1,000,000 units minted to OWNER. Sorts as token1."""
    return make_token(exchange, TOKEN_B, "TKB")


@pytest.fixture
def pool(exchange: Exchange, token_a: MockERC20, token_b: MockERC20) -> ExchangePool:
    """An empty TokenA/TokenB pool."""
    return make_pool(exchange, token_a.address, token_b.address)


@pytest.fixture
def seeded_pool(pool: ExchangePool) -> ExchangePool:
    """TokenA/TokenB pool seeded by OWNER with 1000 TKA and 500 TKB."""
    seed_pool(pool, OWNER, 1000 * E18, 500 * E18)
    return pool
