"""
Tests for the HTTP CanopyClient.
"""
import pytest
import requests

from canopy_sdk.client import CanopyClient
from canopy_sdk.exceptions import ResponseError, TransportError
from canopy_sdk.models import CallIntent

BASE_URL = "https://canopy.example.com"
VERIFIER = "0x0000000000000000000000000000000000000002"


@pytest.fixture
def client():
    return CanopyClient(BASE_URL)


@pytest.mark.parametrize("url", [
    "https://canopy.example.com",
    "http://localhost:8080",
    "http://127.0.0.1",
])
def test_accepts_secure_or_local_urls(url):
    assert CanopyClient(url + "/").base_url == url


def test_rejects_plain_http():
    with pytest.raises(ValueError, match="https://"):
        CanopyClient("http://canopy.example.com")


def test_health(client, requests_mock):
    body = {"ok": True, "issuerAddress": "0xabc", "policyStatus": {"mode": "allow-all", "status": "unconfigured"}}
    requests_mock.get(f"{BASE_URL}/health/ping", json=body)
    assert client.health() == body


def test_evaluate_policy_sends_wire_intent(client, requests_mock, tx):
    requests_mock.post(f"{BASE_URL}/policy/evaluate", json={"decision": {"outcome": "allow", "reasons": []}})

    client.evaluate_policy(CallIntent.parse(tx))

    assert requests_mock.called
    assert requests_mock.last_request.json() == {"txIntent": tx}


def test_issue_capability_payload(client, requests_mock, tx):
    requests_mock.post(f"{BASE_URL}/capability/issue", json={"capabilitySig": "0x00"})

    client.issue_capability(tx, VERIFIER, expiry=1_700_000_060, nonce=2**200)

    assert requests_mock.last_request.json() == {
        "txIntent": tx,
        "verifier": VERIFIER,
        "expiry": 1_700_000_060,
        "nonce": hex(2**200),
    }


def test_issue_capability_omits_defaults(client, requests_mock, tx):
    requests_mock.post(f"{BASE_URL}/capability/issue", json={"capabilitySig": "0x00"})
    client.issue_capability(tx, VERIFIER)
    assert set(requests_mock.last_request.json()) == {"txIntent", "verifier"}


def test_verify_capability(client, requests_mock, tx):
    requests_mock.post(f"{BASE_URL}/proof/verify", json={"valid": True, "recoveredAddress": "0xabc"})

    verdict = client.verify_capability(tx, VERIFIER, b"\x01" * 65, 1_700_000_060, 7)

    assert verdict["valid"] is True
    sent = requests_mock.last_request.json()
    assert sent["capabilitySig"] == "0x" + "01" * 65
    assert sent["nonce"] == 7


def test_verify_invalid_verdict_is_returned(client, requests_mock, tx):
    requests_mock.post(f"{BASE_URL}/proof/verify", status_code=400,
                       json={"valid": False, "reason": "stale (expiry)"})
    verdict = client.verify_capability(tx, VERIFIER, "0x00", 1, 1)
    assert verdict == {"valid": False, "reason": "stale (expiry)"}


def test_verify_validation_error_raises(client, requests_mock, tx):
    requests_mock.post(f"{BASE_URL}/proof/verify", status_code=400,
                       json={"error": "missing fields (nonce)"})
    with pytest.raises(ResponseError, match="missing fields") as exc_info:
        client.verify_capability(tx, VERIFIER, "0x00", 1, 1)
    assert exc_info.value.status_code == 400


def test_post_errors_are_not_retried(client, requests_mock, tx):
    requests_mock.post(f"{BASE_URL}/attestation/export", status_code=500, text="boom")

    with pytest.raises(ResponseError) as exc_info:
        client.export_attestation(tx)

    assert exc_info.value.status_code == 500
    assert exc_info.value.body is None
    assert requests_mock.call_count == 1


def test_export_attestation_payload(client, requests_mock, tx):
    requests_mock.post(f"{BASE_URL}/attestation/export", json={"signature": "0x00"})
    client.export_attestation(tx, expiry=10, nonce="0x05")
    assert requests_mock.last_request.json() == {"txIntent": tx, "expiry": 10, "nonce": "0x05"}


def test_connection_error(client, requests_mock):
    requests_mock.get(f"{BASE_URL}/health/ping", exc=requests.exceptions.ConnectionError("refused"))
    with pytest.raises(TransportError, match="refused"):
        client.health()


def test_non_json_success(client, requests_mock):
    requests_mock.get(f"{BASE_URL}/health/ping", text="pong")
    with pytest.raises(ResponseError, match="Invalid JSON"):
        client.health()


def test_only_get_is_retried(client):
    retries = client.session.get_adapter(BASE_URL).max_retries
    assert retries.total == 3
    assert list(retries.allowed_methods) == ["GET"]
