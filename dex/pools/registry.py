"""Pair registry (factory) for exchange pools.

Maps each unordered token pair to at most one ExchangePool. Pools are
created empty, addressed deterministically from the factory and the
canonical pair, and never removed. The registry lock only guards the pair
map; pool operations never take it.
"""

from __future__ import annotations

import threading

import structlog
from eth_abi import encode  # type: ignore[attr-defined]
from eth_utils import keccak

from dex.amm.pool import ExchangePool
from dex.config import DEFAULT_POOL_CONFIG, PoolConfig
from dex.constants import FACTORY_ADDRESS
from dex.errors import InvalidAssetPair, PairExists
from dex.ledger import TokenDirectory
from dex.models.types import normalize_address, sort_tokens

logger = structlog.get_logger()


def compute_pair_address(factory: str, token0: str, token1: str) -> str:
    """Deterministic pool address: last 20 bytes of keccak(abi.encode(factory, token0, token1))."""
    encoded = encode(
        ["address", "address", "address"],
        [bytes.fromhex(addr[2:]) for addr in (factory, token0, token1)],
    )
    return "0x" + keccak(encoded)[-20:].hex()


class PairRegistry:
    """Registry of exchange pools keyed by canonical token pair.

    Args:
        tokens: Directory used to resolve token addresses to ledgers
        config: Configuration handed to every pool this registry creates
        address: The factory's own address (feeds pool address derivation)
    """

    def __init__(
        self,
        tokens: TokenDirectory,
        config: PoolConfig = DEFAULT_POOL_CONFIG,
        address: str = FACTORY_ADDRESS,
    ) -> None:
        self.tokens = tokens
        self.config = config
        self.address = normalize_address(address, validate=True)
        self._pools: dict[tuple[str, str], ExchangePool] = {}
        self._pools_by_address: dict[str, ExchangePool] = {}
        # Creation order, like allPairs
        self._all_pairs: list[str] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._all_pairs)

    def _pair_key(self, token_a: str, token_b: str) -> tuple[str, str]:
        try:
            return sort_tokens(token_a, token_b)
        except ValueError as err:
            raise InvalidAssetPair(str(err)) from err

    def create_pair(self, token_a: str, token_b: str) -> str:
        """Create an empty pool for an unordered pair.

        Args:
            token_a: First token address (any case, either order)
            token_b: Second token address

        Returns:
            Address of the new pool

        Raises:
            InvalidAssetPair: If the tokens are identical or unknown
            PairExists: If a pool for this pair is already registered
        """
        token0, token1 = self._pair_key(token_a, token_b)
        ledger0 = self.tokens.get(token0)
        ledger1 = self.tokens.get(token1)
        if ledger0 is None or ledger1 is None:
            missing = token0 if ledger0 is None else token1
            raise InvalidAssetPair(f"Unknown token {missing}")

        with self._lock:
            existing = self._pools.get((token0, token1))
            if existing is not None:
                raise PairExists(f"Pair {token0}/{token1} already exists at {existing.address}")
            pool = ExchangePool(
                address=compute_pair_address(self.address, token0, token1),
                token_a=ledger0,
                token_b=ledger1,
                config=self.config,
            )
            self._pools[(token0, token1)] = pool
            self._pools_by_address[pool.address] = pool
            self._all_pairs.append(pool.address)
            pair_count = len(self._all_pairs)

        logger.info(
            "pair_created",
            token0=token0[-8:],
            token1=token1[-8:],
            pair=pool.address,
            pair_count=pair_count,
        )
        return pool.address

    def get_pair(self, token_a: str, token_b: str) -> str | None:
        """Pool address for a pair (order independent), or None if absent."""
        pool = self.get_pool(token_a, token_b)
        return pool.address if pool is not None else None

    def get_pool(self, token_a: str, token_b: str) -> ExchangePool | None:
        """Pool for a pair (order independent), or None if absent."""
        try:
            key = sort_tokens(token_a, token_b)
        except ValueError:
            return None
        return self._pools.get(key)

    def pool_at(self, address: str) -> ExchangePool | None:
        """Pool by its own address, or None."""
        return self._pools_by_address.get(normalize_address(address))

    def all_pairs(self) -> list[str]:
        """Pool addresses in creation order."""
        with self._lock:
            return list(self._all_pairs)


__all__ = ["PairRegistry", "compute_pair_address"]
