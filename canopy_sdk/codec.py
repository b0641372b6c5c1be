"""
EIP-712 payload for Canopy capabilities.

Issuance and verification both build their typed data here; any divergence
would produce signatures that never verify.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .call_hash import args_hash
from .models import CallIntent
from .utils import int_to_hex, normalize_address, parse_uint, to_hex

CAPABILITY_DOMAIN_NAME = "Canopy"
CAPABILITY_DOMAIN_VERSION = "1"
CAPABILITY_PRIMARY_TYPE = "CompliantCall"

EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

COMPLIANT_CALL_TYPE = [
    {"name": "subject", "type": "address"},
    {"name": "verifier", "type": "address"},
    {"name": "target", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "argsHash", "type": "bytes32"},
    {"name": "policyId", "type": "bytes32"},
    {"name": "expiry", "type": "uint64"},
    {"name": "nonce", "type": "uint256"},
]


@dataclass(frozen=True)
class Capability:
    """
    A capability as bound by the signature.

    Attributes:
        subject: Caller authorized to make the call
        verifier: Contract expected to check the capability on-chain
        target: Contract being called
        value: Native value of the call in wei
        args_hash: keccak256 of the call arguments
        policy_id: Policy the intent was evaluated against
        expiry: Unix seconds after which the capability is stale
        nonce: One-time nonce
        signature: 65-byte signature, once issued
    """
    subject: str
    verifier: str
    target: str
    value: int
    args_hash: bytes
    policy_id: bytes
    expiry: int
    nonce: int
    signature: Optional[bytes] = None

    @classmethod
    def from_intent(cls, intent: CallIntent, verifier: str, expiry: Any, nonce: Any) -> "Capability":
        """
        Bind an intent to a verifier, expiry and nonce.

        Raises:
            ValidationError: If verifier, expiry or nonce is malformed
        """
        return cls(
            subject=intent.subject,
            verifier=normalize_address(verifier, "verifier"),
            target=intent.target,
            value=intent.value,
            args_hash=args_hash(intent),
            policy_id=intent.policy_id,
            expiry=parse_uint(expiry, "expiry", 64),
            nonce=parse_uint(nonce, "nonce", 256),
        )

    def message(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "verifier": self.verifier,
            "target": self.target,
            "value": self.value,
            "argsHash": self.args_hash,
            "policyId": self.policy_id,
            "expiry": self.expiry,
            "nonce": self.nonce,
        }

    def to_dict(self) -> Dict[str, Any]:
        """JSON form with hex-encoded byte fields."""
        data = self.message()
        data["value"] = int_to_hex(self.value)
        data["argsHash"] = to_hex(self.args_hash)
        data["policyId"] = to_hex(self.policy_id)
        data["nonce"] = int_to_hex(self.nonce)
        if self.signature is not None:
            data["signature"] = to_hex(self.signature)
        return data


def capability_domain(chain_id: int, verifier: str) -> Dict[str, Any]:
    return {
        "name": CAPABILITY_DOMAIN_NAME,
        "version": CAPABILITY_DOMAIN_VERSION,
        "chainId": chain_id,
        "verifyingContract": verifier,
    }


def capability_typed_data(intent: CallIntent, verifier: str, expiry: Any, nonce: Any) -> Dict[str, Any]:
    """
    Build the full EIP-712 message for a capability.

    Args:
        intent: Validated call intent
        verifier: Address of the verifying contract
        expiry: Unix seconds (uint64)
        nonce: uint256 nonce (int, hex or decimal string)

    Returns:
        Dict with ``types``, ``primaryType``, ``domain`` and ``message``
    """
    capability = Capability.from_intent(intent, verifier, expiry, nonce)
    return typed_data_for(intent.chain_id, capability)


def typed_data_for(chain_id: int, capability: Capability) -> Dict[str, Any]:
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_TYPE,
            CAPABILITY_PRIMARY_TYPE: COMPLIANT_CALL_TYPE,
        },
        "primaryType": CAPABILITY_PRIMARY_TYPE,
        "domain": capability_domain(chain_id, capability.verifier),
        "message": capability.message(),
    }
