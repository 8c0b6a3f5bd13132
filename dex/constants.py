"""Protocol constants for the exchange.

Centralizes default fee parameters and well-known deployment addresses.
"""

from dex.models.types import is_valid_address

# Swap fee retained by the pool: effective_input = amount_in * 997 / 1000 (0.3%)
FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000

# Shares locked forever on the first deposit (0 keeps full withdrawals exact)
MINIMUM_LIQUIDITY = 0

# Decimals used by the mock tokens of the deployment script
DEFAULT_TOKEN_DECIMALS = 18


def _validate_address(name: str, address: str) -> str:
    """Validate and return a deployment address.

    Raises:
        ValueError: If the address is invalid
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid {name} address: {address} (must be 0x + 40 hex chars)")
    return address


# Default deployment addresses (lowercase for consistency)
FACTORY_ADDRESS = _validate_address("factory", "0x5c69bee701ef814a2b6a3edd4b1652cb9cc5aa6f")
ROUTER_ADDRESS = _validate_address("router", "0x7a250d5630b4cf539739df2c5dacb4c659f2488d")
