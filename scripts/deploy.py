#!/usr/bin/env python3
"""Deploy a local exchange with two mock tokens and one pair.

Steps:
1. Deploy TokenA (TKA) and TokenB (TKB) with 1,000,000 units each (18 decimals)
2. Deploy the pair registry and router
3. Approve the router to spend the deployer's TokenA and TokenB
4. Create the TokenA/TokenB pair
5. Optionally seed it with liquidity through the router

Usage:
    python scripts/deploy.py
    python scripts/deploy.py --seed-a 1000 --seed-b 500
    python scripts/deploy.py --deployer 0x... --fee-numerator 1000
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog  # noqa: E402

from dex.config import PoolConfig, RatioPolicy  # noqa: E402
from dex.errors import DexError  # noqa: E402
from dex.exchange import Exchange  # noqa: E402

logger = structlog.get_logger()

DEFAULT_DEPLOYER = "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266"
TOKEN_DECIMALS = 18
INITIAL_SUPPLY = 1_000_000 * 10**TOKEN_DECIMALS


def deploy(
    deployer: str,
    config: PoolConfig,
    seed_a: int = 0,
    seed_b: int = 0,
) -> tuple[Exchange, str]:
    """Deploy the exchange and create the TokenA/TokenB pair.

    Args:
        deployer: Account that receives the token supplies
        config: Pool configuration
        seed_a: Whole TokenA units to seed the pair with (0 = no seeding)
        seed_b: Whole TokenB units to seed the pair with

    Returns:
        (exchange, pair_address)
    """
    exchange = Exchange.deploy(config=config)
    logger.info("deploying_contracts", deployer=deployer)

    token_a = exchange.deploy_token(deployer, "TokenA", "TKA", TOKEN_DECIMALS, INITIAL_SUPPLY)
    token_b = exchange.deploy_token(deployer, "TokenB", "TKB", TOKEN_DECIMALS, INITIAL_SUPPLY)

    token_a.approve(deployer, exchange.router.address, INITIAL_SUPPLY)
    token_b.approve(deployer, exchange.router.address, INITIAL_SUPPLY)
    logger.info("router_approved", router=exchange.router.address)

    pair = exchange.registry.create_pair(token_a.address, token_b.address)

    if seed_a and seed_b:
        result = exchange.router.add_liquidity(
            deployer,
            token_a.address,
            token_b.address,
            seed_a * 10**TOKEN_DECIMALS,
            seed_b * 10**TOKEN_DECIMALS,
        )
        logger.info("pair_seeded", pair=pair, shares=result.shares)

    return exchange, pair


def main() -> int:
    parser = argparse.ArgumentParser(description="Deploy a local SimpleDEX exchange")
    parser.add_argument("--deployer", default=DEFAULT_DEPLOYER, help="Deployer address")
    parser.add_argument("--seed-a", type=int, default=0, help="TokenA units to seed")
    parser.add_argument("--seed-b", type=int, default=0, help="TokenB units to seed")
    parser.add_argument("--fee-numerator", type=int, default=None)
    parser.add_argument("--fee-denominator", type=int, default=None)
    parser.add_argument(
        "--ratio-policy", choices=[p.value for p in RatioPolicy], default=None
    )
    args = parser.parse_args()

    env_config = PoolConfig.from_env()
    config = PoolConfig(
        fee_numerator=args.fee_numerator or env_config.fee_numerator,
        fee_denominator=args.fee_denominator or env_config.fee_denominator,
        minimum_liquidity=env_config.minimum_liquidity,
        ratio_policy=(
            RatioPolicy(args.ratio_policy) if args.ratio_policy else env_config.ratio_policy
        ),
    )

    try:
        exchange, pair = deploy(args.deployer, config, args.seed_a, args.seed_b)
    except (DexError, ValueError) as err:
        logger.error("deployment_failed", error=str(err))
        return 1

    pool = exchange.registry.pool_at(pair)
    if pool is None:
        logger.error("deployment_failed", error=f"pair {pair} not registered")
        return 1
    snapshot = pool.snapshot()
    print(f"Factory:  {exchange.registry.address}")
    print(f"Router:   {exchange.router.address}")
    for token in exchange.tokens.all_tokens():
        print(f"Token:    {token.address}")
    print(f"Pair:     {pair}")
    print(f"Reserves: {snapshot.reserve0} / {snapshot.reserve1}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
