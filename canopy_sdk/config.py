"""
Configuration for the Canopy SDK.

Settings come from environment variables; EAS deployments are looked up in
the packaged ``networks.json``.
"""
import importlib.resources
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .exceptions import ConfigurationError, ValidationError
from .utils import hex_to_bytes, normalize_address

logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "on"}


class NetworkConfig:
    """Registry of EAS deployments per network."""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load network definitions, caching them after the first read.

        Returns:
            Mapping of network name to ``{"chainId", "easRegistry", "schemaRegistry"}``
        """
        if cls._networks_cache is not None:
            return cls._networks_cache

        text = importlib.resources.files("canopy_sdk").joinpath("networks.json").read_text()
        cls._networks_cache = json.loads(text)
        return cls._networks_cache

    @classmethod
    def get_network(cls, name: str) -> Dict[str, Any]:
        """
        Raises:
            ValueError: If the network is unknown (message lists the known ones)
        """
        networks = cls.load_networks()
        if name not in networks:
            available = ", ".join(sorted(networks))
            raise ValueError(f"Unknown network '{name}'. Available networks: {available}")
        return networks[name]

    @classmethod
    def get_chain_id(cls, name: str) -> int:
        return int(cls.get_network(name)["chainId"])

    @classmethod
    def get_registry_address(cls, name: str) -> str:
        return cls.get_network(name)["easRegistry"]


@dataclass(frozen=True)
class AttestationConfig:
    """Where exported attestations are meant to be verified"""
    chain_id: int
    registry_address: str
    schema_id: bytes

    @classmethod
    def create(cls, chain_id: Any, registry_address: str, schema_id: Any) -> "AttestationConfig":
        """
        Validate and build an attestation configuration.

        Raises:
            ConfigurationError: If any value is malformed
        """
        try:
            chain = int(chain_id)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"EAS chain id must be an integer (got {chain_id!r})") from e
        if chain <= 0:
            raise ConfigurationError("EAS chain id must be positive")
        try:
            registry = normalize_address(registry_address, "registryAddress")
            schema = schema_id if isinstance(schema_id, bytes) else hex_to_bytes(schema_id, "schemaId", 32)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e
        if len(schema) != 32:
            raise ConfigurationError("EAS schema id must be 32 bytes")
        return cls(chain_id=chain, registry_address=registry, schema_id=schema)


def _flag(value: Optional[str]) -> bool:
    return bool(value) and value.strip().lower() in TRUTHY


@dataclass
class ServiceConfig:
    """
    Process configuration for a Canopy issuer.

    Attributes:
        issuer_private_key: Issuer key; None means generate an ephemeral key
        policy_location: Policy backend (.wasm path or ``module:attribute``)
        policy_fail_closed: Deny when the policy backend is unavailable
        strict: Refuse to issue when the policy decision is Deny
        capability_ttl: Default capability lifetime in seconds
        eas_network: Network name used to look up chain id and registry
        eas_chain_id: Attestation chain id (overrides eas_network)
        eas_registry_address: EAS contract address (overrides eas_network)
        eas_schema_id: 32-byte EAS schema UID
    """
    issuer_private_key: Optional[str] = None
    policy_location: Optional[str] = None
    policy_fail_closed: bool = False
    strict: bool = False
    capability_ttl: int = 60
    eas_network: Optional[str] = None
    eas_chain_id: Optional[int] = None
    eas_registry_address: Optional[str] = None
    eas_schema_id: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServiceConfig":
        """
        Read configuration from environment variables.

        Raises:
            ConfigurationError: If a numeric variable is not a number
        """
        env = os.environ if environ is None else environ

        def _int(name: str) -> Optional[int]:
            raw = env.get(name)
            if raw in (None, ""):
                return None
            try:
                return int(raw)
            except ValueError as e:
                raise ConfigurationError(f"{name} must be an integer (got {raw!r})") from e

        ttl = _int("CANOPY_CAPABILITY_TTL")
        return cls(
            issuer_private_key=env.get("ISSUER_ECDSA_PRIVATE_KEY") or None,
            policy_location=env.get("POLICY_WASM_PATH") or None,
            policy_fail_closed=_flag(env.get("CANOPY_POLICY_FAIL_CLOSED")),
            strict=_flag(env.get("CANOPY_POLICY_STRICT")),
            capability_ttl=60 if ttl is None else ttl,
            eas_network=env.get("EAS_NETWORK") or None,
            eas_chain_id=_int("EAS_CHAIN_ID"),
            eas_registry_address=env.get("EAS_REGISTRY_ADDRESS") or None,
            eas_schema_id=env.get("EAS_SCHEMA_ID") or None,
        )

    def attestation_config(self) -> AttestationConfig:
        """
        Resolve the attestation registry configuration.

        Raises:
            ConfigurationError: Naming every missing variable
        """
        chain_id = self.eas_chain_id
        registry = self.eas_registry_address
        if self.eas_network:
            try:
                network = NetworkConfig.get_network(self.eas_network)
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
            chain_id = chain_id or network["chainId"]
            registry = registry or network["easRegistry"]

        missing: List[str] = []
        if not chain_id:
            missing.append("EAS_CHAIN_ID")
        if not registry:
            missing.append("EAS_REGISTRY_ADDRESS")
        if not self.eas_schema_id:
            missing.append("EAS_SCHEMA_ID")
        if missing:
            raise ConfigurationError(f"Attestation export is not configured (missing: {', '.join(missing)})")

        return AttestationConfig.create(chain_id, registry, self.eas_schema_id)

    def attestation_requested(self) -> bool:
        """True if any EAS variable is set; export is then expected to work."""
        return any((self.eas_network, self.eas_chain_id, self.eas_registry_address, self.eas_schema_id))
