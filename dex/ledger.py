"""Token ledger collaborator.

The exchange never stores token balances itself. Every asset is backed by a
ledger with approve/transferFrom semantics; pools and the router move tokens
only through it. Transfers return a TransferResult rather than raising so
callers can decide how to unwind a half-finished operation.

MockERC20 is an in-memory ledger for tests, the deployment script and the
API service. TokenDirectory maps token addresses to ledgers.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

import structlog
from eth_abi import encode  # type: ignore[attr-defined]
from eth_utils import keccak

from dex.constants import DEFAULT_TOKEN_DECIMALS
from dex.models.types import UINT256_MAX, is_valid_address, normalize_address

logger = structlog.get_logger()


class TransferError(Enum):
    """Reasons a ledger refuses a transfer."""

    INVALID_AMOUNT = "invalid_amount"
    INVALID_ADDRESS = "invalid_address"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INSUFFICIENT_ALLOWANCE = "insufficient_allowance"


@dataclass(frozen=True)
class TransferResult:
    """Outcome of a ledger transfer.

    Examples:
        result = token.transfer_from(pool, owner, pool, 100)
        if result.is_error:
            ...  # nothing moved, unwind earlier steps
    """

    amount: int
    error: TransferError | None = None
    error_detail: str | None = None

    @property
    def is_ok(self) -> bool:
        return self.error is None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def ok(cls, amount: int) -> TransferResult:
        return cls(amount=amount)

    @classmethod
    def fail(cls, error: TransferError, detail: str) -> TransferResult:
        return cls(amount=0, error=error, error_detail=detail)

    def describe(self) -> str:
        """Human-readable summary for error messages."""
        if self.error is None:
            return f"ok ({self.amount})"
        return f"{self.error.value}: {self.error_detail}"


@runtime_checkable
class TokenLedger(Protocol):
    """Interface the exchange needs from a fungible-token ledger."""

    @property
    def address(self) -> str: ...

    def balance_of(self, account: str) -> int: ...

    def allowance(self, owner: str, spender: str) -> int: ...

    def approve(self, owner: str, spender: str, amount: int) -> TransferResult: ...

    def transfer(self, sender: str, recipient: str, amount: int) -> TransferResult: ...

    def transfer_from(
        self, spender: str, owner: str, recipient: str, amount: int
    ) -> TransferResult: ...


class MockERC20:
    """In-memory ERC-20 style token.

    The whole initial supply is minted to the deployer. Each token guards its
    own balances with a lock; calls never reach into other ledgers.
    """

    def __init__(
        self,
        address: str,
        name: str,
        symbol: str,
        decimals: int = DEFAULT_TOKEN_DECIMALS,
        initial_supply: int = 0,
        owner: str | None = None,
    ) -> None:
        self._address = normalize_address(address, validate=True)
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self._balances: dict[str, int] = defaultdict(int)
        self._allowances: dict[tuple[str, str], int] = defaultdict(int)
        self._total_supply = 0
        self._lock = threading.Lock()
        if initial_supply:
            if owner is None:
                raise ValueError("initial_supply requires an owner")
            self.mint(owner, initial_supply)

    def __repr__(self) -> str:
        return f"MockERC20({self.symbol}, {self._address})"

    @property
    def address(self) -> str:
        return self._address

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, account: str) -> int:
        return self._balances.get(normalize_address(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    def mint(self, to: str, amount: int) -> None:
        """Create new tokens (test and deployment helper)."""
        if amount <= 0:
            raise ValueError(f"Mint amount must be positive, got {amount}")
        to_norm = normalize_address(to, validate=True)
        with self._lock:
            if self._total_supply + amount > UINT256_MAX:
                raise ValueError(f"Mint would overflow total supply of {self.symbol}")
            self._balances[to_norm] += amount
            self._total_supply += amount

    def approve(self, owner: str, spender: str, amount: int) -> TransferResult:
        """Set (not add to) the spender's allowance over owner's tokens."""
        if amount < 0 or amount > UINT256_MAX:
            return TransferResult.fail(TransferError.INVALID_AMOUNT, f"bad allowance {amount}")
        if not (is_valid_address(owner) and is_valid_address(spender)):
            return TransferResult.fail(
                TransferError.INVALID_ADDRESS, f"bad approval {owner} -> {spender}"
            )
        with self._lock:
            self._allowances[(normalize_address(owner), normalize_address(spender))] = amount
        return TransferResult.ok(amount)

    def transfer(self, sender: str, recipient: str, amount: int) -> TransferResult:
        with self._lock:
            return self._move(normalize_address(sender), recipient, amount)

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> TransferResult:
        """Move owner's tokens on behalf of spender, consuming allowance.

        Balance and allowance are both checked before anything changes.
        """
        owner_norm = normalize_address(owner)
        key = (owner_norm, normalize_address(spender))
        with self._lock:
            allowed = self._allowances.get(key, 0)
            if allowed < amount:
                return TransferResult.fail(
                    TransferError.INSUFFICIENT_ALLOWANCE,
                    f"{self.symbol} allowance {allowed} < {amount} for spender {spender}",
                )
            result = self._move(owner_norm, recipient, amount)
            if result.is_ok:
                self._allowances[key] = allowed - amount
            return result

    def _move(self, sender: str, recipient: str, amount: int) -> TransferResult:
        """Move tokens. Caller holds the lock."""
        if amount < 0 or amount > UINT256_MAX:
            return TransferResult.fail(TransferError.INVALID_AMOUNT, f"bad amount {amount}")
        if not is_valid_address(recipient):
            return TransferResult.fail(TransferError.INVALID_ADDRESS, f"bad recipient {recipient}")
        balance = self._balances.get(sender, 0)
        if balance < amount:
            return TransferResult.fail(
                TransferError.INSUFFICIENT_BALANCE,
                f"{self.symbol} balance {balance} < {amount} for {sender}",
            )
        self._balances[sender] = balance - amount
        self._balances[normalize_address(recipient)] += amount
        return TransferResult.ok(amount)


def derive_address(deployer: str, nonce: int) -> str:
    """Deterministic contract-style address for a deployer and nonce."""
    digest = keccak(encode(["address", "uint256"], [bytes.fromhex(deployer[2:]), nonce]))
    return "0x" + digest[-20:].hex()


class TokenDirectory:
    """Resolves token addresses to their ledgers."""

    def __init__(self, tokens: list[TokenLedger] | None = None) -> None:
        self._tokens: dict[str, TokenLedger] = {}
        self._nonce = 0
        self._lock = threading.Lock()
        for token in tokens or []:
            self.register(token)

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and normalize_address(address) in self._tokens

    def register(self, token: TokenLedger) -> None:
        """Add an existing ledger.

        Raises:
            ValueError: If another ledger is registered under the same address
        """
        addr = normalize_address(token.address)
        with self._lock:
            existing = self._tokens.get(addr)
            if existing is not None and existing is not token:
                raise ValueError(f"Token already registered at {addr}")
            self._tokens[addr] = token

    def get(self, address: str) -> TokenLedger | None:
        return self._tokens.get(normalize_address(address))

    def deploy(
        self,
        deployer: str,
        name: str,
        symbol: str,
        decimals: int = DEFAULT_TOKEN_DECIMALS,
        initial_supply: int = 0,
    ) -> MockERC20:
        """Deploy a new MockERC20 minting the initial supply to the deployer."""
        deployer_norm = normalize_address(deployer, validate=True)
        with self._lock:
            self._nonce += 1
            address = derive_address(deployer_norm, self._nonce)
        token = MockERC20(
            address=address,
            name=name,
            symbol=symbol,
            decimals=decimals,
            initial_supply=initial_supply,
            owner=deployer_norm,
        )
        self.register(token)
        logger.info(
            "token_deployed",
            symbol=symbol,
            address=address,
            deployer=deployer_norm[-8:],
            initial_supply=initial_supply,
        )
        return token

    def all_tokens(self) -> list[TokenLedger]:
        return list(self._tokens.values())
