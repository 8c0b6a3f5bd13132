"""API endpoints for the exchange.

Endpoints are plain (sync) functions so FastAPI runs them in its threadpool:
pool operations block on per-pool locks and must not run on the event loop.
Rejected operations raise DexError, which dex.api.main maps to 4xx responses.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Path

from dex.amm.pool import ExchangePool
from dex.exchange import Exchange, get_default_exchange
from dex.ledger import MockERC20, TokenLedger
from dex.models.api import (
    AddLiquidityRequest,
    ApproveRequest,
    BalanceResponse,
    CreatePairRequest,
    DeployTokenRequest,
    LiquidityResponse,
    PairResponse,
    PoolResponse,
    RemoveLiquidityRequest,
    ShareBalanceResponse,
    SwapRequest,
    SwapResponse,
    TokenInfo,
)
from dex.models.types import ADDRESS_PATTERN, normalize_address

logger = structlog.get_logger()

router = APIRouter()

AddressPath = Annotated[str, Path(pattern=ADDRESS_PATTERN)]


def get_exchange() -> Exchange:
    """Dependency provider for the exchange instance.

    Override this in tests to inject a fresh exchange:
        app.dependency_overrides[get_exchange] = lambda: exchange
    """
    return get_default_exchange()


def _token(exchange: Exchange, address: str) -> TokenLedger:
    token = exchange.tokens.get(address)
    if token is None:
        raise HTTPException(status_code=404, detail=f"Unknown token {address}")
    return token


def _pool(exchange: Exchange, address: str) -> ExchangePool:
    pool = exchange.registry.pool_at(address)
    if pool is None:
        raise HTTPException(status_code=404, detail=f"Unknown pool {address}")
    return pool


def _token_info(token: MockERC20) -> TokenInfo:
    return TokenInfo(
        address=token.address,
        name=token.name,
        symbol=token.symbol,
        decimals=token.decimals,
        total_supply=str(token.total_supply),
    )


# --- Tokens ---


@router.post("/tokens", status_code=201)
def deploy_token(
    request: DeployTokenRequest,
    exchange: Exchange = Depends(get_exchange),
) -> TokenInfo:
    """Deploy a mock token and mint its initial supply to the deployer."""
    token = exchange.deploy_token(
        request.deployer,
        request.name,
        request.symbol,
        decimals=request.decimals,
        initial_supply=int(request.initial_supply),
    )
    return _token_info(token)


@router.get("/tokens/{token}")
def get_token(token: AddressPath, exchange: Exchange = Depends(get_exchange)) -> TokenInfo:
    ledger = _token(exchange, token)
    if not isinstance(ledger, MockERC20):
        raise HTTPException(status_code=404, detail=f"No metadata for token {token}")
    return _token_info(ledger)


@router.get("/tokens/{token}/balance/{account}")
def get_balance(
    token: AddressPath,
    account: AddressPath,
    exchange: Exchange = Depends(get_exchange),
) -> BalanceResponse:
    ledger = _token(exchange, token)
    return BalanceResponse(
        token=ledger.address,
        account=normalize_address(account),
        balance=str(ledger.balance_of(account)),
    )


@router.post("/tokens/{token}/approve")
def approve_token(
    token: AddressPath,
    request: ApproveRequest,
    exchange: Exchange = Depends(get_exchange),
) -> ApproveRequest:
    """Set the spender's allowance over the owner's tokens."""
    result = _token(exchange, token).approve(request.owner, request.spender, int(request.amount))
    if result.is_error:
        raise HTTPException(status_code=400, detail=result.describe())
    return request


# --- Pairs and pools ---


@router.post("/pairs", status_code=201)
def create_pair(
    request: CreatePairRequest,
    exchange: Exchange = Depends(get_exchange),
) -> PairResponse:
    """Create the pool for an unordered pair (409 if it already exists)."""
    pair = exchange.registry.create_pair(request.token_a, request.token_b)
    pool = _pool(exchange, pair)
    return PairResponse(pair=pair, token0=pool.token0, token1=pool.token1)


@router.get("/pairs")
def list_pairs(exchange: Exchange = Depends(get_exchange)) -> list[str]:
    """All pool addresses in creation order."""
    return exchange.registry.all_pairs()


@router.get("/pairs/{token_a}/{token_b}")
def get_pair(
    token_a: AddressPath,
    token_b: AddressPath,
    exchange: Exchange = Depends(get_exchange),
) -> PairResponse:
    pool = exchange.registry.get_pool(token_a, token_b)
    if pool is None:
        raise HTTPException(status_code=404, detail=f"No pair for {token_a}/{token_b}")
    return PairResponse(pair=pool.address, token0=pool.token0, token1=pool.token1)


@router.get("/pools/{pair}")
def get_pool(pair: AddressPath, exchange: Exchange = Depends(get_exchange)) -> PoolResponse:
    return PoolResponse.from_snapshot(_pool(exchange, pair).snapshot())


@router.get("/pools/{pair}/shares/{account}")
def get_shares(
    pair: AddressPath,
    account: AddressPath,
    exchange: Exchange = Depends(get_exchange),
) -> ShareBalanceResponse:
    pool = _pool(exchange, pair)
    return ShareBalanceResponse(
        pair=pool.address,
        account=normalize_address(account),
        shares=str(pool.liquidity_of(account)),
    )


@router.post("/pools/{pair}/approve")
def approve_shares(
    pair: AddressPath,
    request: ApproveRequest,
    exchange: Exchange = Depends(get_exchange),
) -> ApproveRequest:
    """Let the spender (usually the router) move the owner's liquidity shares."""
    _pool(exchange, pair).approve(request.owner, request.spender, int(request.amount))
    return request


# --- Router ---


@router.post("/router/add-liquidity")
def add_liquidity(
    request: AddLiquidityRequest,
    exchange: Exchange = Depends(get_exchange),
) -> LiquidityResponse:
    result = exchange.router.add_liquidity(
        request.caller,
        request.token_a,
        request.token_b,
        int(request.amount_a),
        int(request.amount_b),
        amount_a_min=int(request.amount_a_min),
        amount_b_min=int(request.amount_b_min),
        to=request.to,
        create_pair=request.create_pair,
    )
    logger.info(
        "liquidity_added",
        pair=result.pair,
        caller=request.caller[-8:],
        shares=result.shares,
    )
    return LiquidityResponse.from_result(result)


@router.post("/router/remove-liquidity")
def remove_liquidity(
    request: RemoveLiquidityRequest,
    exchange: Exchange = Depends(get_exchange),
) -> LiquidityResponse:
    result = exchange.router.remove_liquidity(
        request.caller,
        request.token_a,
        request.token_b,
        int(request.shares),
        amount_a_min=int(request.amount_a_min),
        amount_b_min=int(request.amount_b_min),
        to=request.to,
    )
    logger.info(
        "liquidity_removed",
        pair=result.pair,
        caller=request.caller[-8:],
        shares=result.shares,
    )
    return LiquidityResponse.from_result(result)


@router.post("/router/swap")
def swap(
    request: SwapRequest,
    exchange: Exchange = Depends(get_exchange),
) -> SwapResponse:
    result = exchange.router.swap(
        request.caller,
        int(request.amount_in),
        request.token_in,
        request.token_out,
        min_amount_out=int(request.min_amount_out),
        to=request.to,
    )
    logger.info(
        "swap_routed",
        pair=result.pair,
        caller=request.caller[-8:],
        amount_in=result.amount_in,
        amount_out=result.amount_out,
    )
    return SwapResponse.from_result(result)
