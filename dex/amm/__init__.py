"""Constant product AMM: pool math and the exchange pool state machine."""

from dex.amm.constant_product import ConstantProduct, constant_product
from dex.amm.pool import ExchangePool, PoolSnapshot, PoolState

__all__ = [
    # Math
    "ConstantProduct",
    "constant_product",
    # Pool
    "ExchangePool",
    "PoolSnapshot",
    "PoolState",
]
