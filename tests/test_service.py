"""
Tests for the request-level CapabilityService.
"""
import pytest
from eth_abi import decode

from canopy_sdk.attestation import ATTESTATION_DATA_TYPES
from canopy_sdk.config import ServiceConfig
from canopy_sdk.exceptions import ConfigurationError, MissingFieldsError, PolicyDeniedError, ValidationError
from canopy_sdk.models import Decision
from canopy_sdk.policy import PolicyEngine
from canopy_sdk.service import CapabilityService
from conftest import SAMPLE_CALL_HASH, TEST_NOW, TEST_PRIV_KEY, TEST_REGISTRY, TEST_SCHEMA_ID


class DenyBackend:
    mode = "python"

    def evaluate(self, input):
        return {"allow": False, "reasons": ["target not allow-listed"]}


def test_health(service, signer):
    assert service.health() == {
        "ok": True,
        "issuerAddress": signer.address,
        "policyStatus": {"mode": "allow-all", "status": "unconfigured"},
    }


def test_evaluate_allow(service, tx, signer):
    response = service.evaluate_policy({"txIntent": tx})

    assert response["decision"] == {"outcome": "allow", "reasons": []}
    artifacts = response["artifacts"]
    assert set(artifacts) == {"callHash", "expiry", "nonce", "capabilitySig"}
    assert artifacts["callHash"] == SAMPLE_CALL_HASH
    assert artifacts["expiry"] == TEST_NOW + 60

    # Capabilities from evaluation are bound to the target as verifier
    verdict = service.verify_capability({
        "txIntent": tx,
        "verifier": tx["target"],
        "capabilitySig": artifacts["capabilitySig"],
        "expiry": artifacts["expiry"],
        "nonce": artifacts["nonce"],
    })
    assert verdict == {"valid": True, "recoveredAddress": signer.address}


def test_evaluate_deny_still_issues(signer, clock, tx):
    service = CapabilityService(signer, policy_engine=PolicyEngine.with_backend(DenyBackend()), clock=clock)
    response = service.evaluate_policy({"txIntent": tx})
    assert response["decision"] == {"outcome": "deny", "reasons": ["target not allow-listed"]}
    assert response["artifacts"]["capabilitySig"].startswith("0x")


def test_evaluate_deny_strict(signer, clock, tx):
    service = CapabilityService(signer, policy_engine=PolicyEngine.with_backend(DenyBackend()),
                                strict=True, clock=clock)
    response = service.evaluate_policy({"txIntent": tx})
    assert response["decision"]["outcome"] == "deny"
    assert response["artifacts"] is None


def test_evaluate_invalid_intent(service, tx):
    tx["subject"] = "0x1234"
    with pytest.raises(ValidationError) as exc_info:
        service.evaluate_policy({"txIntent": tx})
    assert exc_info.value.errors[0]["field"] == "subject"


def test_evaluate_missing_intent(service):
    with pytest.raises(ValidationError, match="txIntent must be an object"):
        service.evaluate_policy({})


def test_rejects_non_object_body(service):
    with pytest.raises(ValidationError, match="Request body must be an object"):
        service.issue_capability(["txIntent"])


def test_issue_and_verify(service, tx, signer):
    verifier = "0x00000000000000000000000000000000000000aa"
    issued = service.issue_capability({"txIntent": tx, "verifier": verifier, "nonce": "0x10"})

    assert issued["issuerAddress"] == signer.address
    assert issued["nonce"] == "0x10"
    assert issued["callHash"] == SAMPLE_CALL_HASH

    verdict = service.verify_capability({
        "txIntent": tx,
        "verifier": verifier,
        "capabilitySig": issued["capabilitySig"],
        "expiry": issued["expiry"],
        "nonce": issued["nonce"],
    })
    assert verdict["valid"] is True
    assert verdict["recoveredAddress"] == signer.address


def test_issue_requires_verifier(service, tx):
    with pytest.raises(ValidationError, match="verifier required"):
        service.issue_capability({"txIntent": tx})


def test_verify_stale(service, tx, clock):
    issued = service.issue_capability({"txIntent": tx, "verifier": tx["target"]})
    clock.advance(120)
    verdict = service.verify_capability({
        "txIntent": tx,
        "verifier": tx["target"],
        "capabilitySig": issued["capabilitySig"],
        "expiry": issued["expiry"],
        "nonce": issued["nonce"],
    })
    assert verdict == {"valid": False, "reason": "stale (expiry)"}


def test_verify_missing_fields(service, tx):
    with pytest.raises(MissingFieldsError) as exc_info:
        service.verify_capability({"txIntent": tx, "verifier": tx["target"]})
    assert exc_info.value.fields == ["capabilitySig", "expiry", "nonce"]


def test_verify_garbage_signature(service, tx):
    verdict = service.verify_capability({
        "txIntent": tx,
        "verifier": tx["target"],
        "capabilitySig": "0x1234",
        "expiry": TEST_NOW + 10,
        "nonce": "0x1",
    })
    assert verdict["valid"] is False
    assert "65 bytes" in verdict["reason"]


def test_export_attestation(service, tx):
    export = service.export_attestation({"txIntent": tx, "expiry": TEST_NOW + 30, "nonce": 5})

    assert export["domain"]["name"] == "EAS Attestation"
    assert export["message"]["schema"] == TEST_SCHEMA_ID
    data = bytes.fromhex(export["message"]["data"][2:])
    digest, expiry, nonce = decode(ATTESTATION_DATA_TYPES, data)
    assert "0x" + digest.hex() == SAMPLE_CALL_HASH
    assert (expiry, nonce) == (TEST_NOW + 30, 5)


def test_export_without_configuration(signer, tx):
    service = CapabilityService(signer)
    with pytest.raises(ConfigurationError):
        service.export_attestation({"txIntent": tx})


def test_from_config():
    config = ServiceConfig(
        issuer_private_key=TEST_PRIV_KEY,
        strict=True,
        capability_ttl=90,
        eas_network="ethereum_sepolia",
        eas_schema_id=TEST_SCHEMA_ID,
    )
    service = CapabilityService.from_config(config, start_policy=False)

    assert service.issuer.strict
    assert service.issuer.ttl_seconds == 90
    assert service.exporter.config.chain_id == 11155111
    assert service.policy_engine.status()["mode"] == "allow-all"


def test_from_config_invalid_key():
    with pytest.raises(ConfigurationError):
        CapabilityService.from_config(ServiceConfig(issuer_private_key="0x00"))


@pytest.mark.parametrize("eas", [
    {"eas_chain_id": 1, "eas_registry_address": TEST_REGISTRY, "eas_schema_id": "0x1234"},
    {"eas_chain_id": 1, "eas_registry_address": "0x1234", "eas_schema_id": TEST_SCHEMA_ID},
    {"eas_network": "atlantis", "eas_schema_id": TEST_SCHEMA_ID},
])
def test_from_config_rejects_malformed_attestation(eas):
    config = ServiceConfig(issuer_private_key=TEST_PRIV_KEY, **eas)
    with pytest.raises(ConfigurationError) as exc_info:
        CapabilityService.from_config(config, start_policy=False)
    assert "Attestation export requires" not in str(exc_info.value)


def test_from_config_rejects_incomplete_attestation():
    config = ServiceConfig(issuer_private_key=TEST_PRIV_KEY, eas_schema_id=TEST_SCHEMA_ID)
    with pytest.raises(ConfigurationError, match="missing: EAS_CHAIN_ID, EAS_REGISTRY_ADDRESS"):
        CapabilityService.from_config(config, start_policy=False)


def test_from_config_generates_key_without_attestation():
    service = CapabilityService.from_config(ServiceConfig(), start_policy=False)
    assert service.issuer_address.startswith("0x")
    assert service.exporter.config is None


def test_from_config_starts_policy(tmp_path):
    config = ServiceConfig(issuer_private_key=TEST_PRIV_KEY, policy_location=str(tmp_path / "missing.wasm"))
    service = CapabilityService.from_config(config)
    service.policy_engine.init()
    assert service.health()["policyStatus"]["status"] == "degraded"


def test_strict_issuer_refuses_denied_decision(signer, clock, intent):
    service = CapabilityService(signer, strict=True, clock=clock)
    with pytest.raises(PolicyDeniedError):
        service.issuer.issue(intent, intent.target, decision=Decision.deny())
