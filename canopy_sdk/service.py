"""
CapabilityService - transport-neutral façade over the capability protocol.

Each method takes a JSON-shaped request body and returns a JSON-shaped
response, so any HTTP framework can mount them on routes:

    GET  /health/ping          -> health()
    POST /policy/evaluate      -> evaluate_policy(body)
    POST /capability/issue     -> issue_capability(body)
    POST /proof/verify         -> verify_capability(body)
    POST /attestation/export   -> export_attestation(body)
"""
import logging
import time
from typing import Any, Dict, Mapping, Optional

from .attestation import AttestationExporter
from .config import AttestationConfig, ServiceConfig
from .exceptions import (
    ConfigurationError, PolicyDeniedError, StaleCapabilityError, ValidationError
)
from .issuer import DEFAULT_TTL_SECONDS, CapabilityIssuer
from .models import CallIntent
from .policy import PolicyEngine
from .signer import LocalSigner, Signer
from .utils import Clock
from .verifier import CapabilityVerifier


def _body(body: Any) -> Mapping[str, Any]:
    if body is None:
        return {}
    if not isinstance(body, Mapping):
        raise ValidationError(f"Request body must be an object, got {type(body).__name__}",
                              [{"field": "body", "message": "expected an object"}])
    return body


class CapabilityService:
    """
    Evaluates, issues, verifies and exports capabilities.

    Raises ValidationError for malformed requests and ConfigurationError when
    attestation export is not configured; transports map both to client
    errors. Stale or unrecoverable capabilities are reported as
    ``{"valid": False, "reason": ...}`` rather than raised.
    """

    def __init__(
        self,
        signer: Signer,
        policy_engine: Optional[PolicyEngine] = None,
        attestation_config: Optional[AttestationConfig] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        strict: bool = False,
        clock: Clock = time.time,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            signer: Process-wide signer holding the issuer key
            policy_engine: Policy engine; defaults to an allow-all engine
            attestation_config: EAS registry settings; None disables export
            ttl_seconds: Default capability lifetime
            strict: Do not issue capabilities for denied intents
            clock: Time source returning Unix seconds
            logger: Optional logger instance
        """
        self.signer = signer
        self.policy_engine = policy_engine or PolicyEngine()
        self.logger = logger or logging.getLogger(__name__)
        self.issuer = CapabilityIssuer(signer, ttl_seconds=ttl_seconds, strict=strict,
                                       clock=clock, logger=self.logger)
        self.verifier = CapabilityVerifier(clock=clock, logger=self.logger)
        self.exporter = AttestationExporter(signer, attestation_config, ttl_seconds=ttl_seconds,
                                            clock=clock, logger=self.logger)

    @classmethod
    def from_config(cls, config: ServiceConfig, start_policy: bool = True, **kwargs) -> "CapabilityService":
        """
        Build a service from configuration.

        The issuer key is loaded (or generated when absent); an invalid key is
        fatal. Attestation export is disabled only when no EAS variable is set;
        an incomplete or malformed EAS configuration is fatal.

        Args:
            config: Service configuration
            start_policy: Attach the policy backend on a background thread

        Raises:
            ConfigurationError: If the issuer key or the EAS configuration is invalid
        """
        signer = LocalSigner.from_key_or_generate(config.issuer_private_key)

        attestation = None
        if config.attestation_requested():
            attestation = config.attestation_config()

        engine = PolicyEngine(config.policy_location, fail_closed=config.policy_fail_closed)
        if start_policy:
            engine.start()

        return cls(
            signer,
            policy_engine=engine,
            attestation_config=attestation,
            ttl_seconds=config.capability_ttl,
            strict=config.strict,
            **kwargs
        )

    @property
    def issuer_address(self) -> str:
        return self.signer.address

    def health(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "issuerAddress": self.issuer_address,
            "policyStatus": self.policy_engine.status(),
        }

    def evaluate_policy(self, body: Any) -> Dict[str, Any]:
        """
        Evaluate the policy for an intent and issue a capability for it.

        The capability is issued with ``verifier = target`` whatever the
        outcome, unless the service is strict and the outcome is Deny, in
        which case ``artifacts`` is None.
        """
        request = _body(body)
        intent = CallIntent.parse(request.get("txIntent"))
        decision = self.policy_engine.evaluate(intent)

        try:
            issued = self.issuer.issue(intent, intent.target, decision=decision)
        except PolicyDeniedError as e:
            self.logger.info(f"Not issuing capability: {e}")
            return {"decision": decision.to_dict(), "artifacts": None}

        artifacts = issued.to_dict()
        return {
            "decision": decision.to_dict(),
            "artifacts": {
                "callHash": artifacts["callHash"],
                "expiry": artifacts["expiry"],
                "nonce": artifacts["nonce"],
                "capabilitySig": artifacts["capabilitySig"],
            },
        }

    def issue_capability(self, body: Any) -> Dict[str, Any]:
        request = _body(body)
        intent = CallIntent.parse(request.get("txIntent"))
        verifier = request.get("verifier")
        if not verifier:
            raise ValidationError("verifier required", [{"field": "verifier", "message": "Field required"}])
        issued = self.issuer.issue(intent, verifier, request.get("expiry"), request.get("nonce"))
        return issued.to_dict()

    def verify_capability(self, body: Any) -> Dict[str, Any]:
        """
        Verify a capability.

        Returns:
            ``{"valid": True, "recoveredAddress": ...}`` or ``{"valid": False, "reason": ...}``

        Raises:
            ValidationError: If the intent is malformed or fields are missing
        """
        request = _body(body)
        intent = CallIntent.parse(request.get("txIntent"))
        try:
            result = self.verifier.verify(
                intent,
                request.get("verifier"),
                request.get("capabilitySig"),
                request.get("expiry"),
                request.get("nonce"),
            )
        except StaleCapabilityError:
            return {"valid": False, "reason": "stale (expiry)"}
        return result.to_dict()

    def export_attestation(self, body: Any) -> Dict[str, Any]:
        request = _body(body)
        if self.exporter.config is None:
            raise ConfigurationError(
                "Attestation export requires EAS_CHAIN_ID, EAS_REGISTRY_ADDRESS and EAS_SCHEMA_ID"
            )
        intent = CallIntent.parse(request.get("txIntent"))
        export = self.exporter.export(intent, request.get("expiry"), request.get("nonce"))
        return export.to_dict()
