"""Exchange deployment: token directory, pair registry and router wired together."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from dex.config import PoolConfig
from dex.constants import DEFAULT_TOKEN_DECIMALS, FACTORY_ADDRESS, ROUTER_ADDRESS
from dex.ledger import MockERC20, TokenDirectory
from dex.pools.registry import PairRegistry
from dex.routing.router import Router

logger = structlog.get_logger()


@dataclass
class Exchange:
    """One deployed exchange."""

    tokens: TokenDirectory
    registry: PairRegistry
    router: Router

    @classmethod
    def deploy(
        cls,
        config: PoolConfig | None = None,
        factory_address: str = FACTORY_ADDRESS,
        router_address: str = ROUTER_ADDRESS,
    ) -> Exchange:
        """Deploy an empty exchange.

        Args:
            config: Pool configuration. Defaults to PoolConfig.from_env().
            factory_address: Address of the pair registry
            router_address: Address of the router
        """
        pool_config = config if config is not None else PoolConfig.from_env()
        tokens = TokenDirectory()
        registry = PairRegistry(tokens, config=pool_config, address=factory_address)
        router = Router(registry, address=router_address)
        logger.info(
            "exchange_deployed",
            factory=registry.address,
            router=router.address,
            fee_bps=pool_config.fee_bps,
            minimum_liquidity=pool_config.minimum_liquidity,
            ratio_policy=pool_config.ratio_policy.value,
        )
        return cls(tokens=tokens, registry=registry, router=router)

    def deploy_token(
        self,
        deployer: str,
        name: str,
        symbol: str,
        decimals: int = DEFAULT_TOKEN_DECIMALS,
        initial_supply: int = 0,
    ) -> MockERC20:
        return self.tokens.deploy(
            deployer, name, symbol, decimals=decimals, initial_supply=initial_supply
        )


_default_exchange: Exchange | None = None


def get_default_exchange() -> Exchange:
    """Process-wide exchange used by the API, created on first use."""
    global _default_exchange
    if _default_exchange is None:
        _default_exchange = Exchange.deploy()
    return _default_exchange


def reset_default_exchange() -> None:
    """Drop the process-wide exchange (next call deploys a fresh one)."""
    global _default_exchange
    _default_exchange = None
