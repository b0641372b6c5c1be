"""
Property-based tests for the Canopy SDK.

These tests verify that properties hold true across many random inputs.
"""
from hypothesis import given, settings, strategies as st

from canopy_sdk.call_hash import call_hash
from canopy_sdk.issuer import CapabilityIssuer
from canopy_sdk.models import CallIntent
from canopy_sdk.signer import LocalSigner
from canopy_sdk.verifier import CapabilityVerifier
from conftest import TEST_NOW, TEST_PRIV_KEY, FixedClock

# Signing is slow enough that one key is shared across examples
SIGNER = LocalSigner(TEST_PRIV_KEY)


def _hex(n_bytes):
    return st.binary(min_size=n_bytes, max_size=n_bytes).map(lambda b: "0x" + b.hex())


intent_strategy = st.fixed_dictionaries({
    "chainId": st.integers(min_value=1, max_value=2**64),
    "subject": _hex(20),
    "target": _hex(20),
    "value": st.integers(min_value=0, max_value=2**256 - 1).map(hex),
    "selector": _hex(4),
    "args": st.binary(max_size=256).map(lambda b: "0x" + b.hex()),
    "policyId": _hex(32),
})


@settings(max_examples=100)
@given(tx=intent_strategy)
def test_parse_round_trips_to_wire(tx):
    wire = CallIntent.parse(tx).to_wire()
    assert wire["chainId"] == tx["chainId"]
    assert wire["subject"].lower() == tx["subject"]
    assert wire["target"].lower() == tx["target"]
    assert int(wire["value"], 16) == int(tx["value"], 16)
    assert wire["args"] == tx["args"]
    assert wire["policyId"] == tx["policyId"]


@settings(max_examples=100)
@given(tx=intent_strategy)
def test_call_hash_is_deterministic(tx):
    first = call_hash(CallIntent.parse(tx))
    second = call_hash(CallIntent.parse(dict(tx)))
    assert first == second
    assert len(first) == 32


@settings(max_examples=50)
@given(tx=intent_strategy, delta=st.integers(min_value=1, max_value=2**64))
def test_call_hash_is_sensitive_to_value(tx, delta):
    original = CallIntent.parse(tx)
    changed = dict(tx, value=hex((int(tx["value"], 16) + delta) % 2**256))
    assert call_hash(CallIntent.parse(changed)) != call_hash(original)


@settings(max_examples=20, deadline=None)
@given(
    tx=intent_strategy,
    verifier=_hex(20),
    ttl=st.integers(min_value=0, max_value=10**6),
    nonce=st.integers(min_value=0, max_value=2**256 - 1),
)
def test_issue_then_verify_recovers_issuer(tx, verifier, ttl, nonce):
    clock = FixedClock(TEST_NOW)
    intent = CallIntent.parse(tx)
    issued = CapabilityIssuer(SIGNER, ttl_seconds=ttl, clock=clock).issue(intent, verifier, nonce=nonce)

    result = CapabilityVerifier(clock=clock).verify(
        intent, verifier, issued.capability_sig, issued.expiry, hex(issued.nonce)
    )

    assert result.valid
    assert result.signed_by(SIGNER.address)
