"""
Capability verification.

Verification recomputes the EIP-712 payload from the intent and the caller's
stated expiry and nonce, then recovers the signer. It deliberately does not
decide whether the recovered address is trusted; callers compare it against
their own issuer list.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.messages import encode_typed_data

from .codec import capability_typed_data
from .exceptions import MissingFieldsError, SignatureRecoveryError, StaleCapabilityError, ValidationError
from .models import CallIntent
from .utils import Clock, hex_to_bytes, now_seconds, parse_uint


@dataclass
class VerificationResult:
    valid: bool
    recovered_address: Optional[str] = None
    reason: Optional[str] = None

    def signed_by(self, address: str) -> bool:
        """True if the capability is valid and recovers to ``address``."""
        return (
            self.valid
            and self.recovered_address is not None
            and self.recovered_address.lower() == address.lower()
        )

    def to_dict(self) -> Dict[str, Any]:
        if self.valid:
            return {"valid": True, "recoveredAddress": self.recovered_address}
        return {"valid": False, "reason": self.reason}


def recover_signer(typed_data: Dict[str, Any], signature: Any) -> str:
    """
    Recover the address that signed an EIP-712 message.

    Raises:
        SignatureRecoveryError: If the signature is malformed or unrecoverable
    """
    try:
        sig_bytes = signature if isinstance(signature, bytes) else hex_to_bytes(signature, "capabilitySig")
    except ValidationError as e:
        raise SignatureRecoveryError(str(e)) from e
    if len(sig_bytes) != 65:
        raise SignatureRecoveryError(f"signature must be 65 bytes (got {len(sig_bytes)})")

    try:
        return Account.recover_message(encode_typed_data(full_message=typed_data), signature=sig_bytes)
    except Exception as e:
        raise SignatureRecoveryError(f"signature recovery failed: {e}") from e


class CapabilityVerifier:
    """Checks capability signatures for call intents."""

    REQUIRED_FIELDS = ("verifier", "capabilitySig", "expiry", "nonce")

    def __init__(self, clock: Clock = time.time, logger: Optional[logging.Logger] = None):
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

    def verify(
        self,
        intent: CallIntent,
        verifier: Optional[str],
        capability_sig: Optional[Any],
        expiry: Optional[Any],
        nonce: Optional[Any]
    ) -> VerificationResult:
        """
        Verify a capability signature against an intent.

        Args:
            intent: Validated call intent
            verifier: Verifying contract address the capability was issued for
            capability_sig: 65-byte signature as 0x-hex (or bytes)
            expiry: Expiry stated by the caller
            nonce: Nonce stated by the caller

        Returns:
            VerificationResult; ``valid`` is False when the signature cannot be recovered

        Raises:
            MissingFieldsError: If any of verifier, signature, expiry or nonce is missing
            StaleCapabilityError: If expiry is in the past
            ValidationError: If verifier, expiry or nonce is malformed
        """
        supplied = {
            "verifier": verifier,
            "capabilitySig": capability_sig,
            "expiry": expiry,
            "nonce": nonce,
        }
        missing = [
            name for name in self.REQUIRED_FIELDS
            if supplied[name] is None or supplied[name] == "" or supplied[name] == b""
        ]
        if missing:
            raise MissingFieldsError(missing)

        expiry_value = parse_uint(expiry, "expiry", 64)
        now = now_seconds(self.clock)
        if expiry_value < now:
            raise StaleCapabilityError(expiry_value, now)

        typed_data = capability_typed_data(intent, verifier, expiry_value, nonce)

        try:
            recovered = recover_signer(typed_data, capability_sig)
        except SignatureRecoveryError as e:
            self.logger.info(f"Capability verification failed: {e}")
            return VerificationResult(valid=False, reason=str(e))

        self.logger.debug("Recovered capability signer %s", recovered)
        return VerificationResult(valid=True, recovered_address=recovered)
