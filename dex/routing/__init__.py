"""Routing of user calls to exchange pools.

Module structure:
- router.py: Router façade class
- types.py: LiquidityResult and SwapResult dataclasses
"""

from dex.routing.router import Router
from dex.routing.types import LiquidityResult, SwapResult

__all__ = [
    "LiquidityResult",
    "Router",
    "SwapResult",
]
