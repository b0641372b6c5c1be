"""
Canopy SDK - policy-gated capabilities for on-chain call intents.
"""
from .attestation import AttestationExport, AttestationExporter
from .call_hash import args_hash, call_hash, call_hash_hex, derive_nonce
from .client import CanopyClient
from .codec import Capability, capability_typed_data
from .config import AttestationConfig, NetworkConfig, ServiceConfig
from .exceptions import (
    CanopyError, ConfigurationError, IssuanceError, MissingFieldsError, PolicyBackendError,
    PolicyDeniedError, ResponseError, SignatureRecoveryError, StaleCapabilityError,
    TransportError, ValidationError
)
from .issuer import CapabilityIssuer, IssuedCapability
from .models import CallIntent, Decision, DecisionOutcome
from .policy import PolicyEngine, PolicyStatus
from .service import CapabilityService
from .signer import LocalSigner, Signer
from .verifier import CapabilityVerifier, VerificationResult
from .version import __version__

__all__ = [
    "CallIntent",
    "Decision",
    "DecisionOutcome",
    "Capability",
    "capability_typed_data",
    "call_hash",
    "call_hash_hex",
    "args_hash",
    "derive_nonce",
    "PolicyEngine",
    "PolicyStatus",
    "CapabilityIssuer",
    "IssuedCapability",
    "CapabilityVerifier",
    "VerificationResult",
    "AttestationExporter",
    "AttestationExport",
    "CapabilityService",
    "CanopyClient",
    "Signer",
    "LocalSigner",
    "ServiceConfig",
    "AttestationConfig",
    "NetworkConfig",
    "CanopyError",
    "ValidationError",
    "MissingFieldsError",
    "ConfigurationError",
    "StaleCapabilityError",
    "SignatureRecoveryError",
    "PolicyBackendError",
    "IssuanceError",
    "PolicyDeniedError",
    "TransportError",
    "ResponseError",
    "__version__",
]
