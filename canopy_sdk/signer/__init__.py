"""
Signers for the Canopy SDK.

A signer holds the issuer key for the lifetime of the process and is passed
explicitly to the issuer and the attestation exporter.
"""
from typing import Any, Dict, Protocol

from .local import LocalSigner

__all__ = ['Signer', 'LocalSigner']


class Signer(Protocol):
    """Protocol for EIP-712 signers"""
    address: str

    def sign_typed_data(self, typed_data: Dict[str, Any]) -> bytes:
        """Sign a full EIP-712 message and return the 65-byte signature"""
        ...
