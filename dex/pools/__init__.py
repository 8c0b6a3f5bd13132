"""Pool management package.

Provides PairRegistry, the factory that owns every exchange pool.
"""

from .registry import PairRegistry, compute_pair_address

__all__ = [
    "PairRegistry",
    "compute_pair_address",
]
