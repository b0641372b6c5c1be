"""
Canonical hashing of call intents.

The call hash is the commitment every capability ultimately binds to, so the
encoded field order and types below must never change:

    keccak256(abi.encode(uint256 chainId, address target, address subject,
                         bytes4 selector, uint256 value, bytes32 argsHash))

Note that ``target`` precedes ``subject``.
"""
from eth_abi import encode
from web3 import Web3

from .models import CallIntent
from .utils import to_hex

CALL_HASH_TYPES = ["uint256", "address", "address", "bytes4", "uint256", "bytes32"]
NONCE_TYPES = ["bytes32", "address"]


def args_hash(intent: CallIntent) -> bytes:
    """keccak256 of the ABI-encoded call arguments (selector excluded)."""
    return bytes(Web3.keccak(intent.args))


def call_hash(intent: CallIntent) -> bytes:
    """
    Compute the 32-byte call hash of an intent.

    Args:
        intent: A validated CallIntent

    Returns:
        32-byte digest
    """
    encoded = encode(
        CALL_HASH_TYPES,
        [
            intent.chain_id,
            intent.target,
            intent.subject,
            intent.selector,
            intent.value,
            args_hash(intent),
        ]
    )
    return bytes(Web3.keccak(encoded))


def call_hash_hex(intent: CallIntent) -> str:
    return to_hex(call_hash(intent))


def derive_nonce(digest: bytes, issuer_address: str) -> int:
    """
    Default capability nonce: uint256(keccak256(abi.encode(callHash, issuer))).

    Deterministic per (intent, issuer); issuing twice for the same intent
    yields the same nonce unless the caller supplies one.
    """
    return int.from_bytes(Web3.keccak(encode(NONCE_TYPES, [digest, issuer_address])), "big")
