#!/usr/bin/env python3
"""
Simple example of using the Canopy SDK in-process.
"""
import json
import os

from canopy_sdk import CallIntent, CapabilityService, ServiceConfig


def main():
    """
    Demonstrate basic usage of the CapabilityService.

    This example shows how to:
    1. Build a service from environment configuration
    2. Evaluate the policy for an intent and receive a capability
    3. Verify the capability the way a pre-call check would
    """
    # ISSUER_ECDSA_PRIVATE_KEY is optional; an ephemeral key is generated without it
    config = ServiceConfig.from_env()
    service = CapabilityService.from_config(config, start_policy=False)
    service.policy_engine.init()

    tx_intent = {
        "chainId": int(os.environ.get("CHAIN_ID", "1")),
        "subject": "0x0000000000000000000000000000000000000001",
        "target": "0x0000000000000000000000000000000000000002",
        "value": "0x0",
        "selector": "0xabcdef01",
        "args": "0x",
        "policyId": "0x" + "0" * 63 + "1",
    }

    print(f"Issuer: {service.issuer_address}")
    print(f"Policy: {json.dumps(service.policy_engine.status())}")

    evaluation = service.evaluate_policy({"txIntent": tx_intent})
    print(f"Decision: {evaluation['decision']['outcome']} {evaluation['decision']['reasons']}")

    artifacts = evaluation["artifacts"]
    if artifacts is None:
        print("No capability issued (strict mode and the policy denied the intent)")
        return

    print(f"Call hash: {artifacts['callHash']}")
    print(f"Capability: {artifacts['capabilitySig'][:20]}...")

    # Capabilities returned by evaluation are bound to the target contract
    verdict = service.verify_capability({
        "txIntent": tx_intent,
        "verifier": tx_intent["target"],
        "capabilitySig": artifacts["capabilitySig"],
        "expiry": artifacts["expiry"],
        "nonce": artifacts["nonce"],
    })
    print(f"Verified: {verdict}")

    intent = CallIntent.parse(tx_intent)
    print(f"Parsed intent: chain {intent.chain_id}, target {intent.target}")


if __name__ == "__main__":
    main()
