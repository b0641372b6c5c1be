"""
Export of call hashes as EAS off-chain attestations.

This path signs under its own EIP-712 domain and struct, independent of the
capability payload, with the same issuer key.
"""
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from eth_abi import encode

from .call_hash import call_hash, derive_nonce
from .codec import EIP712_DOMAIN_TYPE
from .config import AttestationConfig
from .exceptions import CanopyError, ConfigurationError, IssuanceError
from .models import CallIntent
from .signer import Signer
from .utils import Clock, now_seconds, parse_uint, to_hex, truncate

EAS_DOMAIN_NAME = "EAS Attestation"
EAS_DOMAIN_VERSION = "1.0.0"
ATTEST_PRIMARY_TYPE = "Attest"

ATTEST_TYPE = [
    {"name": "schema", "type": "bytes32"},
    {"name": "recipient", "type": "address"},
    {"name": "time", "type": "uint64"},
    {"name": "expirationTime", "type": "uint64"},
    {"name": "revocable", "type": "bool"},
    {"name": "refUID", "type": "bytes32"},
    {"name": "data", "type": "bytes"},
    {"name": "salt", "type": "bytes32"},
]

# abi.encode(bytes32 callHash, uint64 expiry, uint256 nonce)
ATTESTATION_DATA_TYPES = ["bytes32", "uint64", "uint256"]

ZERO_UID = b"\x00" * 32


def encode_attestation_data(digest: bytes, expiry: int, nonce: int) -> bytes:
    return encode(ATTESTATION_DATA_TYPES, [digest, expiry, nonce])


@dataclass
class AttestationExport:
    """Signed EAS attestation ready to publish"""
    domain: Dict[str, Any]
    struct_type: List[Dict[str, str]]
    message: Dict[str, Any]
    signature: bytes

    def to_dict(self) -> Dict[str, Any]:
        message = {
            key: to_hex(value) if isinstance(value, bytes) else value
            for key, value in self.message.items()
        }
        return {
            "domain": dict(self.domain),
            "structType": {ATTEST_PRIMARY_TYPE: list(self.struct_type)},
            "message": message,
            "signature": to_hex(self.signature),
        }


class AttestationExporter:
    """Builds and signs EAS attestations embedding a call hash."""

    def __init__(
        self,
        signer: Signer,
        config: Optional[AttestationConfig] = None,
        ttl_seconds: int = 60,
        clock: Clock = time.time,
        salt_factory: Callable[[], bytes] = lambda: os.urandom(32),
        logger: Optional[logging.Logger] = None
    ):
        self.signer = signer
        self.config = config
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.salt_factory = salt_factory
        self.logger = logger or logging.getLogger(__name__)

    def domain(self) -> Dict[str, Any]:
        config = self._require_config()
        return {
            "name": EAS_DOMAIN_NAME,
            "version": EAS_DOMAIN_VERSION,
            "chainId": config.chain_id,
            "verifyingContract": config.registry_address,
        }

    def _require_config(self) -> AttestationConfig:
        if self.config is None:
            raise ConfigurationError(
                "Attestation export requires EAS_CHAIN_ID, EAS_REGISTRY_ADDRESS and EAS_SCHEMA_ID"
            )
        return self.config

    def export(
        self,
        intent: CallIntent,
        expiry: Optional[Any] = None,
        nonce: Optional[Any] = None
    ) -> AttestationExport:
        """
        Sign an attestation committing to the intent's call hash.

        Args:
            intent: Validated call intent
            expiry: Unix seconds; defaults to now + ttl_seconds
            nonce: uint256; defaults to the capability default nonce

        Returns:
            AttestationExport with domain, struct type, message and signature

        Raises:
            ConfigurationError: If the registry is not configured
            ValidationError: If expiry or nonce is malformed
            IssuanceError: If signing fails
        """
        config = self._require_config()
        now = now_seconds(self.clock)
        digest = call_hash(intent)

        expiry_value = parse_uint(now + self.ttl_seconds if expiry is None else expiry, "expiry", 64)
        nonce_value = parse_uint(derive_nonce(digest, self.signer.address) if nonce is None else nonce,
                                 "nonce", 256)

        salt = self.salt_factory()
        if len(salt) != 32:
            raise IssuanceError("attestation salt must be 32 bytes")

        message = {
            "schema": config.schema_id,
            "recipient": intent.subject,
            "time": now,
            "expirationTime": expiry_value,
            "revocable": True,
            "refUID": ZERO_UID,
            "data": encode_attestation_data(digest, expiry_value, nonce_value),
            "salt": salt,
        }
        domain = self.domain()
        typed_data = {
            "types": {
                "EIP712Domain": EIP712_DOMAIN_TYPE,
                ATTEST_PRIMARY_TYPE: ATTEST_TYPE,
            },
            "primaryType": ATTEST_PRIMARY_TYPE,
            "domain": domain,
            "message": message,
        }

        try:
            signature = self.signer.sign_typed_data(typed_data)
        except CanopyError:
            raise
        except Exception as e:
            self.logger.error(f"Attestation signing failed: {e}")
            raise IssuanceError(f"Failed to sign attestation: {str(e)}") from e

        self.logger.debug("Exported attestation for call %s on chain %d",
                          truncate(to_hex(digest), 18), config.chain_id)
        return AttestationExport(domain=domain, struct_type=ATTEST_TYPE, message=message, signature=signature)
