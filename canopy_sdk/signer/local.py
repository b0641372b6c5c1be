"""
Local in-memory signer backed by eth_account.
"""
import logging
from typing import Any, Dict, Optional, Union

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_account.signers.local import LocalAccount

from ..exceptions import ConfigurationError
from .ec_constants import SECP256K1_MAX, SECP256K1_MIN

logger = logging.getLogger(__name__)


class LocalSigner:
    """
    Signs EIP-712 payloads with a secp256k1 key held in process memory.

    The key is read-only after construction.
    """

    def __init__(self, private_key: Union[str, bytes]):
        """
        Args:
            private_key: 32-byte key as bytes or 0x-prefixed hex

        Raises:
            ConfigurationError: If the key is malformed or outside the curve order
        """
        key_bytes = self._key_bytes(private_key)
        self._account: LocalAccount = Account.from_key(key_bytes)

    @staticmethod
    def _key_bytes(private_key: Union[str, bytes]) -> bytes:
        if isinstance(private_key, str):
            digits = private_key[2:] if private_key.startswith("0x") else private_key
            try:
                key_bytes = bytes.fromhex(digits)
            except ValueError as e:
                raise ConfigurationError("Issuer private key is not valid hex") from e
        else:
            key_bytes = bytes(private_key)

        if len(key_bytes) != 32:
            raise ConfigurationError(f"Issuer private key must be 32 bytes (got {len(key_bytes)})")

        key_int = int.from_bytes(key_bytes, "big")
        if not SECP256K1_MIN <= key_int <= SECP256K1_MAX:
            raise ConfigurationError("Issuer private key is outside the secp256k1 range")
        return key_bytes

    @classmethod
    def generate(cls) -> "LocalSigner":
        """Create a signer with a fresh random key (ephemeral, dev use)."""
        account = Account.create()
        signer = cls(bytes(account.key))
        logger.warning("Using ephemeral issuer key %s; capabilities will not survive a restart",
                       signer.address)
        return signer

    @classmethod
    def from_key_or_generate(cls, private_key: Optional[str]) -> "LocalSigner":
        if private_key:
            return cls(private_key)
        return cls.generate()

    @property
    def address(self) -> str:
        """Checksummed address of the signing key"""
        return self._account.address

    def sign_typed_data(self, typed_data: Dict[str, Any]) -> bytes:
        """
        Sign a full EIP-712 message.

        Args:
            typed_data: Dict with ``types``, ``primaryType``, ``domain`` and ``message``

        Returns:
            65-byte signature (r || s || v)
        """
        signable = encode_typed_data(full_message=typed_data)
        signed = self._account.sign_message(signable)
        return bytes(signed.signature)
