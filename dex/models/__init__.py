"""Shared types and pydantic models for the exchange.

API request/response models live in dex.models.api.
"""

from dex.models.types import Address, Uint256, normalize_address, sort_tokens

__all__ = [
    "Address",
    "Uint256",
    "normalize_address",
    "sort_tokens",
]
