"""
Capability issuance.
"""
import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .call_hash import call_hash, derive_nonce
from .codec import Capability, typed_data_for
from .exceptions import CanopyError, IssuanceError, PolicyDeniedError
from .models import CallIntent, Decision
from .signer import Signer
from .utils import Clock, int_to_hex, now_seconds, to_hex, truncate

DEFAULT_TTL_SECONDS = 60


@dataclass
class IssuedCapability:
    """Artifacts returned by a successful issuance"""
    capability: Capability
    call_hash: bytes
    issuer_address: str

    @property
    def capability_sig(self) -> str:
        return to_hex(self.capability.signature)

    @property
    def expiry(self) -> int:
        return self.capability.expiry

    @property
    def nonce(self) -> int:
        return self.capability.nonce

    def to_dict(self) -> Dict[str, Any]:
        return {
            "capabilitySig": self.capability_sig,
            "callHash": to_hex(self.call_hash),
            "issuerAddress": self.issuer_address,
            "expiry": self.expiry,
            "nonce": int_to_hex(self.nonce),
        }


class CapabilityIssuer:
    """
    Signs capabilities for call intents.

    Policy decisions are advisory: ``issue`` signs regardless of the decision
    unless the issuer was created with ``strict=True``.
    """

    def __init__(
        self,
        signer: Signer,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        strict: bool = False,
        clock: Clock = time.time,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            signer: Process-wide signer holding the issuer key
            ttl_seconds: Lifetime of capabilities issued without an explicit expiry
            strict: Refuse to sign when a Deny decision is passed to ``issue``
            clock: Time source returning Unix seconds
            logger: Optional logger instance
        """
        self.signer = signer
        self.ttl_seconds = ttl_seconds
        self.strict = strict
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

    @property
    def issuer_address(self) -> str:
        return self.signer.address

    def default_expiry(self) -> int:
        return now_seconds(self.clock) + self.ttl_seconds

    def issue(
        self,
        intent: CallIntent,
        verifier: str,
        expiry: Optional[Any] = None,
        nonce: Optional[Any] = None,
        decision: Optional[Decision] = None
    ) -> IssuedCapability:
        """
        Issue a capability for an intent.

        Args:
            intent: Validated call intent
            verifier: Address of the contract that will check the capability
            expiry: Unix seconds; defaults to now + ttl_seconds
            nonce: uint256; defaults to a value derived from the call hash and issuer
            decision: Policy decision, consulted only in strict mode

        Returns:
            IssuedCapability with signature, call hash, issuer, expiry and nonce

        Raises:
            ValidationError: If verifier, expiry or nonce is malformed
            PolicyDeniedError: In strict mode, if the decision is Deny
            IssuanceError: If signing fails
        """
        if self.strict and decision is not None and not decision.allowed:
            raise PolicyDeniedError(decision.reasons)

        digest = call_hash(intent)
        if expiry is None:
            expiry = self.default_expiry()
        if nonce is None:
            nonce = derive_nonce(digest, self.issuer_address)

        capability = Capability.from_intent(intent, verifier, expiry, nonce)
        typed_data = typed_data_for(intent.chain_id, capability)

        try:
            signature = self.signer.sign_typed_data(typed_data)
        except CanopyError:
            raise
        except Exception as e:
            self.logger.error(f"Capability signing failed: {e}")
            raise IssuanceError(f"Failed to sign capability: {str(e)}") from e

        issued = IssuedCapability(
            capability=dataclasses.replace(capability, signature=signature),
            call_hash=digest,
            issuer_address=self.issuer_address,
        )
        self.logger.debug(
            "Issued capability %s for call %s (expiry=%d)",
            truncate(issued.capability_sig, 20), truncate(to_hex(digest), 18), issued.expiry
        )
        return issued
