"""
Pytest fixtures for the Canopy SDK tests.
"""
import copy

import pytest

from canopy_sdk._rate_limited_log import reset_rate_limits
from canopy_sdk.config import AttestationConfig, NetworkConfig
from canopy_sdk.issuer import CapabilityIssuer
from canopy_sdk.models import CallIntent
from canopy_sdk.service import CapabilityService
from canopy_sdk.signer import LocalSigner
from canopy_sdk.verifier import CapabilityVerifier

# Constants for testing
TEST_PRIV_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
OTHER_PRIV_KEY = "0x" + "22" * 32
TEST_NOW = 1_700_000_000
TEST_REGISTRY = "0xC2679fBD37d54388Ce493F1DB75320D236e1815e"
TEST_SCHEMA_ID = "0x" + "ab" * 32

SAMPLE_TX = {
    "chainId": 1,
    "subject": "0x0000000000000000000000000000000000000001",
    "target": "0x0000000000000000000000000000000000000002",
    "value": "0x0",
    "selector": "0xabcdef01",
    "args": "0x",
    "policyId": "0x" + "0" * 63 + "1",
}

# keccak256(abi.encode(uint256(1), address(0x..02), address(0x..01),
#                      bytes4(0xabcdef01), uint256(0), keccak256("")))
SAMPLE_CALL_HASH = "0x4e6527343f9ae3ece622bf11fdaf2752b6e2d6ab57ac021c2a0b3b7fb714b42c"


class FixedClock:
    """Controllable time source returning Unix seconds."""

    def __init__(self, now: int = TEST_NOW):
        self.now = now

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_module_state():
    """Module-level caches must not leak between tests."""
    NetworkConfig._networks_cache = None
    reset_rate_limits()
    yield
    NetworkConfig._networks_cache = None
    reset_rate_limits()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def signer():
    return LocalSigner(TEST_PRIV_KEY)


@pytest.fixture
def other_signer():
    return LocalSigner(OTHER_PRIV_KEY)


@pytest.fixture
def tx():
    """Wire-form intent; a fresh copy per test so tests can mutate it."""
    return copy.deepcopy(SAMPLE_TX)


@pytest.fixture
def intent(tx):
    return CallIntent.parse(tx)


@pytest.fixture
def issuer(signer, clock):
    return CapabilityIssuer(signer, clock=clock)


@pytest.fixture
def verifier(clock):
    return CapabilityVerifier(clock=clock)


@pytest.fixture
def attestation_config():
    return AttestationConfig.create(11155111, TEST_REGISTRY, TEST_SCHEMA_ID)


@pytest.fixture
def service(signer, clock, attestation_config):
    return CapabilityService(signer, attestation_config=attestation_config, clock=clock)
