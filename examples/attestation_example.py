#!/usr/bin/env python3
"""
Example of exporting a call hash as an EAS off-chain attestation.
"""
import argparse
import json
import sys

from canopy_sdk import AttestationConfig, AttestationExporter, CallIntent, LocalSigner, NetworkConfig


def main():
    """Run the example."""
    parser = argparse.ArgumentParser(description="Export an EAS attestation for a call intent.")
    parser.add_argument("intent", help="Path to intent JSON")
    parser.add_argument("--network", help="EAS network name", default="ethereum_sepolia")
    parser.add_argument("--schema", help="EAS schema UID (0x-hex, 32 bytes)", required=True)
    parser.add_argument("--key", help="Issuer private key (generated if omitted)")
    parser.add_argument("--list-networks", help="List known networks and exit", action="store_true")

    args = parser.parse_args()

    if args.list_networks:
        for name, network in sorted(NetworkConfig.load_networks().items()):
            print(f"{name}: chain {network['chainId']} registry {network['easRegistry']}")
        return 0

    with open(args.intent, "r", encoding="utf-8") as f:
        intent = CallIntent.parse(json.load(f))

    config = AttestationConfig.create(
        NetworkConfig.get_chain_id(args.network),
        NetworkConfig.get_registry_address(args.network),
        args.schema,
    )
    signer = LocalSigner.from_key_or_generate(args.key)
    export = AttestationExporter(signer, config).export(intent)

    print(f"Attester: {signer.address}")
    print(json.dumps(export.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
