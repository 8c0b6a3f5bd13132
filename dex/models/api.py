"""Pydantic models for the exchange HTTP API.

Field names are camelCase on the wire; amounts are uint256 decimal strings.
"""

from pydantic import BaseModel, Field

from dex.amm.pool import PoolSnapshot
from dex.models.types import Address, Uint256
from dex.routing.types import LiquidityResult, SwapResult


class DeployTokenRequest(BaseModel):
    """Deploy a mock token, minting the whole supply to the deployer."""

    deployer: Address
    name: str = Field(min_length=1)
    symbol: str = Field(min_length=1)
    decimals: int = Field(default=18, ge=0, le=77)
    initial_supply: Uint256 = Field(default="0", alias="initialSupply")

    model_config = {"populate_by_name": True}


class TokenInfo(BaseModel):
    address: Address
    name: str
    symbol: str
    decimals: int
    total_supply: Uint256 = Field(alias="totalSupply")

    model_config = {"populate_by_name": True}


class BalanceResponse(BaseModel):
    token: Address
    account: Address
    balance: Uint256


class ApproveRequest(BaseModel):
    """Set spender's allowance over owner's tokens (or pool shares)."""

    owner: Address
    spender: Address
    amount: Uint256


class CreatePairRequest(BaseModel):
    token_a: Address = Field(alias="tokenA")
    token_b: Address = Field(alias="tokenB")

    model_config = {"populate_by_name": True}


class PairResponse(BaseModel):
    pair: Address
    token0: Address
    token1: Address


class PoolResponse(BaseModel):
    """Current state of one exchange pool."""

    address: Address
    token0: Address
    token1: Address
    reserve0: Uint256
    reserve1: Uint256
    total_supply: Uint256 = Field(alias="totalSupply")
    state: str
    fee_numerator: int = Field(alias="feeNumerator")
    fee_denominator: int = Field(alias="feeDenominator")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_snapshot(cls, snapshot: PoolSnapshot) -> "PoolResponse":
        return cls(
            address=snapshot.address,
            token0=snapshot.token0,
            token1=snapshot.token1,
            reserve0=str(snapshot.reserve0),
            reserve1=str(snapshot.reserve1),
            total_supply=str(snapshot.total_supply),
            state=snapshot.state.value,
            fee_numerator=snapshot.fee_numerator,
            fee_denominator=snapshot.fee_denominator,
        )


class ShareBalanceResponse(BaseModel):
    pair: Address
    account: Address
    shares: Uint256


class AddLiquidityRequest(BaseModel):
    caller: Address
    token_a: Address = Field(alias="tokenA")
    token_b: Address = Field(alias="tokenB")
    amount_a: Uint256 = Field(alias="amountA")
    amount_b: Uint256 = Field(alias="amountB")
    amount_a_min: Uint256 = Field(default="0", alias="amountAMin")
    amount_b_min: Uint256 = Field(default="0", alias="amountBMin")
    to: Address | None = None
    create_pair: bool = Field(default=False, alias="createPair")

    model_config = {"populate_by_name": True}


class RemoveLiquidityRequest(BaseModel):
    caller: Address
    token_a: Address = Field(alias="tokenA")
    token_b: Address = Field(alias="tokenB")
    shares: Uint256
    amount_a_min: Uint256 = Field(default="0", alias="amountAMin")
    amount_b_min: Uint256 = Field(default="0", alias="amountBMin")
    to: Address | None = None

    model_config = {"populate_by_name": True}


class LiquidityResponse(BaseModel):
    pair: Address
    amount_a: Uint256 = Field(alias="amountA")
    amount_b: Uint256 = Field(alias="amountB")
    shares: Uint256

    model_config = {"populate_by_name": True}

    @classmethod
    def from_result(cls, result: LiquidityResult) -> "LiquidityResponse":
        return cls(
            pair=result.pair,
            amount_a=str(result.amount_a),
            amount_b=str(result.amount_b),
            shares=str(result.shares),
        )


class SwapRequest(BaseModel):
    caller: Address
    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    amount_in: Uint256 = Field(alias="amountIn")
    min_amount_out: Uint256 = Field(default="0", alias="minAmountOut")
    to: Address | None = None

    model_config = {"populate_by_name": True}


class SwapResponse(BaseModel):
    pair: Address
    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    amount_in: Uint256 = Field(alias="amountIn")
    amount_out: Uint256 = Field(alias="amountOut")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_result(cls, result: SwapResult) -> "SwapResponse":
        return cls(
            pair=result.pair,
            token_in=result.token_in,
            token_out=result.token_out,
            amount_in=str(result.amount_in),
            amount_out=str(result.amount_out),
        )


class ErrorResponse(BaseModel):
    """Body returned for rejected exchange operations."""

    error: str = Field(description="Stable error code, e.g. 'pair_exists'")
    detail: str
