"""Test helpers module for shared test utilities.

- constants: Accounts, token addresses and common amounts
- factories: Exchange, token and pool factory functions
"""

from tests.helpers.constants import (
    ALICE,
    BOB,
    E18,
    INITIAL_SUPPLY,
    OWNER,
    TOKEN_A,
    TOKEN_B,
    TOKEN_C,
)
from tests.helpers.factories import (
    approve_pool,
    fund,
    make_exchange,
    make_pool,
    make_token,
    seed_pool,
)

__all__ = [
    # Constants
    "OWNER",
    "ALICE",
    "BOB",
    "TOKEN_A",
    "TOKEN_B",
    "TOKEN_C",
    "E18",
    "INITIAL_SUPPLY",
    # Factories
    "make_exchange",
    "make_token",
    "make_pool",
    "approve_pool",
    "seed_pool",
    "fund",
]
