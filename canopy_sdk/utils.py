"""
Utility functions for the Canopy SDK.
"""
import re
import time
from typing import Any, Callable, Optional

from web3 import Web3

from .exceptions import ValidationError

HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")
ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

UINT64_MAX = 2**64 - 1
UINT256_MAX = 2**256 - 1

Clock = Callable[[], float]


def to_hex(data: bytes) -> str:
    """Render bytes as a 0x-prefixed lowercase hex string."""
    return "0x" + bytes(data).hex()


def int_to_hex(value: int) -> str:
    """Render an unsigned integer as minimal 0x-prefixed hex."""
    return hex(value)


def hex_to_bytes(value: str, field: str, length: Optional[int] = None) -> bytes:
    """
    Decode a 0x-prefixed hex string.

    Args:
        value: Hex string to decode
        field: Field name used in error messages
        length: Exact byte length required, if any

    Returns:
        Decoded bytes

    Raises:
        ValidationError: If the value is not 0x-hex or has the wrong length
    """
    if not isinstance(value, str) or not HEX_RE.match(value):
        raise ValidationError(f"{field} must be a 0x-prefixed hex string",
                              [{"field": field, "message": "malformed hex"}])
    digits = value[2:]
    if len(digits) % 2:
        raise ValidationError(f"{field} has an odd number of hex digits",
                              [{"field": field, "message": "odd-length hex"}])
    data = bytes.fromhex(digits)
    if length is not None and len(data) != length:
        raise ValidationError(f"{field} must be exactly {length} bytes (got {len(data)})",
                              [{"field": field, "message": f"expected {length} bytes"}])
    return data


def normalize_address(value: Any, field: str) -> str:
    """
    Validate a 20-byte hex address and return its checksummed form.

    Mixed-case input is not checksum-verified.
    """
    if not isinstance(value, str) or not ADDRESS_RE.match(value):
        raise ValidationError(f"{field} must be a 20-byte 0x-prefixed hex address",
                              [{"field": field, "message": "invalid address"}])
    return Web3.to_checksum_address(value.lower())


def parse_uint(value: Any, field: str, bits: int = 256) -> int:
    """
    Parse an unsigned integer from an int, a 0x-hex string or a decimal string.

    Raises:
        ValidationError: If the value is not numeric or does not fit in ``bits``
    """
    if isinstance(value, bool):
        number = None
    elif isinstance(value, int):
        number = value
    elif isinstance(value, str) and HEX_RE.match(value) and len(value) > 2:
        number = int(value, 16)
    elif isinstance(value, str) and value.isdigit():
        number = int(value)
    else:
        number = None

    if number is None:
        raise ValidationError(f"{field} must be an unsigned integer",
                              [{"field": field, "message": "not a number"}])
    if number < 0 or number >= 2**bits:
        raise ValidationError(f"{field} does not fit in uint{bits}",
                              [{"field": field, "message": f"out of range for uint{bits}"}])
    return number


def now_seconds(clock: Clock = time.time) -> int:
    """Current Unix time in whole seconds."""
    return int(clock())


def truncate(value: str, keep: int = 10) -> str:
    """Shorten a long hex value for log lines."""
    if len(value) <= keep:
        return value
    return f"{value[:keep]}…"
