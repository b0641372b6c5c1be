#!/usr/bin/env python3
"""
Example of talking to a remote Canopy service over HTTP.
"""
import os

from canopy_sdk import CanopyClient, ResponseError, TransportError


def main():
    CANOPY_URL = os.environ.get("CANOPY_URL", "http://localhost:8080")
    VERIFIER = os.environ.get("VERIFIER_ADDRESS")

    if not VERIFIER:
        print("ERROR: VERIFIER_ADDRESS environment variable is required")
        return

    client = CanopyClient(CANOPY_URL)
    tx_intent = {
        "chainId": 1,
        "subject": "0x0000000000000000000000000000000000000001",
        "target": "0x0000000000000000000000000000000000000002",
        "value": "0x0",
        "selector": "0xabcdef01",
        "args": "0x",
        "policyId": "0x" + "0" * 63 + "1",
    }

    try:
        print(f"Health: {client.health()}")

        issued = client.issue_capability(tx_intent, VERIFIER)
        print(f"Issued by {issued['issuerAddress']} (expires {issued['expiry']})")

        verdict = client.verify_capability(
            tx_intent, VERIFIER, issued["capabilitySig"], issued["expiry"], issued["nonce"]
        )
        print(f"Verdict: {verdict}")
    except TransportError as e:
        print(f"Service unreachable: {str(e)}")
    except ResponseError as e:
        print(f"Service error ({e.status_code}): {str(e)}")


if __name__ == "__main__":
    main()
