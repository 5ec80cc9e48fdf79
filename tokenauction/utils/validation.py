"""
Checks for values that arrive from callers.

Each validator returns ``(ok, reason)`` rather than raising, so the caller
decides what a failure means: the engine and tokens turn it into a revert,
the config loader into a pydantic validation error.
"""

from typing import Any, Tuple

from tokenauction.crypto import ZERO_ADDRESS, is_valid_address, normalize_address

# =============================================================================
# Constants
# =============================================================================

MAX_UINT256 = (1 << 256) - 1
MAX_STRING_LENGTH = 2048

OK: Tuple[bool, str] = (True, "")


def _wrong_type(name: str, expected: str, value: Any) -> Tuple[bool, str]:
    return False, f"{name}: expected {expected}, got {type(value).__name__}"


# =============================================================================
# Validators
# =============================================================================


def validate_address(address: Any, name: str = "address", allow_zero: bool = True) -> Tuple[bool, str]:
    """
    20-byte hex address. With ``allow_zero=False`` the zero address is
    refused as well.
    """
    if not isinstance(address, str):
        return _wrong_type(name, "address string", address)
    if not is_valid_address(address):
        return False, f"{name}: {address!r} is not a 20-byte hex address"
    if not allow_zero and normalize_address(address) == ZERO_ADDRESS:
        return False, f"{name}: zero address not allowed"
    return OK


def validate_integer(value: Any, name: str, min_val: int = 0, max_val: int = MAX_UINT256) -> Tuple[bool, str]:
    """Integer in ``[min_val, max_val]``; bools and floats are rejected."""
    if type(value) is not int:
        return _wrong_type(name, "int", value)
    if not min_val <= value <= max_val:
        return False, f"{name}: {value} outside [{min_val}, {max_val}]"
    return OK


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    return validate_integer(amount, name)


def validate_string(
    value: Any,
    name: str,
    max_length: int = MAX_STRING_LENGTH,
    allow_empty: bool = False,
) -> Tuple[bool, str]:
    """
    Text field such as a resource name or value.

    Args:
        value: Candidate value
        name: Field name used in the reason
        max_length: Longest accepted length, in characters
        allow_empty: Accept ``""``
    """
    if not isinstance(value, str):
        return _wrong_type(name, "str", value)
    if not value and not allow_empty:
        return False, f"{name}: empty string not allowed"
    if len(value) > max_length:
        return False, f"{name}: longer than {max_length} characters"
    return OK


__all__ = [
    "MAX_STRING_LENGTH",
    "MAX_UINT256",
    "validate_address",
    "validate_amount",
    "validate_integer",
    "validate_string",
]
