"""Exchange error classes.

Every failure is a rejected individual operation: nothing is retried and no
partial state survives. Each class carries a stable `code` used by the API.
"""


class DexError(Exception):
    """Base error for exchange operations."""

    code = "dex_error"


class ZeroAmount(DexError):
    """A required amount was zero or negative."""

    code = "zero_amount"


class InsufficientAllowance(DexError):
    """Pulling tokens from the caller through the ledger failed."""

    code = "insufficient_allowance"


class InsufficientShares(DexError):
    """The caller holds fewer liquidity shares than requested."""

    code = "insufficient_shares"


class InsufficientLiquidity(DexError):
    """Reserves cannot satisfy the operation (empty pool, zero output, drain)."""

    code = "insufficient_liquidity"


class InvalidAssetPair(DexError):
    """Tokens do not match the pool's pair, or are unknown or identical."""

    code = "invalid_asset_pair"


class PairExists(DexError):
    """A pool for this unordered pair is already registered."""

    code = "pair_exists"


class PairNotFound(DexError):
    """No pool is registered for this pair."""

    code = "pair_not_found"


class SlippageExceeded(DexError):
    """Computed amount violates the caller's minimum-output or maximum-input bound."""

    code = "slippage_exceeded"


class RatioMismatch(DexError):
    """Deposit is not in the current reserve ratio (reject policy only)."""

    code = "ratio_mismatch"


class InvariantViolation(DexError):
    """Constant product would decrease. Indicates a math bug."""

    code = "invariant_violation"


class TransferFailed(DexError):
    """A push out of pool or router custody was refused by the ledger."""

    code = "transfer_failed"
