"""
Command line interface for the Canopy SDK.

    canopy call-hash intent.json
    canopy issue intent.json --verifier 0x... [--expiry N] [--nonce N]
    canopy issue intent.json --evaluate
    canopy verify intent.json --verifier 0x... --sig 0x... --expiry N --nonce N
    canopy attest intent.json
    canopy health

Intent files hold the wire-form txIntent (``-`` reads stdin). Issuing and
attesting use the issuer configured through the environment
(ISSUER_ECDSA_PRIVATE_KEY, POLICY_WASM_PATH, EAS_*).
"""
import functools
import json
import logging
import sys
from typing import Any, Callable, Dict, Optional

import typer

from .call_hash import args_hash, call_hash
from .config import ServiceConfig
from .exceptions import CanopyError, StaleCapabilityError
from .models import CallIntent
from .service import CapabilityService
from .utils import to_hex
from .verifier import CapabilityVerifier, VerificationResult
from .version import __version__

app = typer.Typer(help="Issue and verify Canopy capabilities.", add_completion=False)

INTENT_HELP = "Path to intent JSON ('-' for stdin)"


def _load_intent(path: str) -> Dict[str, Any]:
    if path == "-":
        data = json.load(sys.stdin)
    else:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    # Accept either a bare intent or a request body wrapping it
    if isinstance(data, dict) and "txIntent" in data:
        return data["txIntent"]
    return data


def _echo_json(data: Dict[str, Any]) -> None:
    typer.echo(json.dumps(data, indent=2, sort_keys=True))


def _service() -> CapabilityService:
    service = CapabilityService.from_config(ServiceConfig.from_env(), start_policy=False)
    service.policy_engine.init()
    return service


def _handle_errors(fn: Callable) -> Callable:
    """Report SDK, file and JSON errors as ``error: ...`` with exit code 2."""
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (CanopyError, OSError, json.JSONDecodeError) as e:
            typer.echo(f"error: {e}", err=True)
            raise typer.Exit(code=2)
    return wrapper


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"canopy {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    debug: bool = typer.Option(False, "--debug", help="Enable debug output"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True,
                                 help="Show the version and exit"),
):
    logging.basicConfig(level=logging.DEBUG if debug else logging.WARNING)


@app.command("call-hash")
@_handle_errors
def call_hash_cmd(intent: str = typer.Argument(..., help=INTENT_HELP)):
    """Compute the call hash of an intent."""
    parsed = CallIntent.parse(_load_intent(intent))
    _echo_json({"callHash": to_hex(call_hash(parsed)), "argsHash": to_hex(args_hash(parsed))})


@app.command("issue")
@_handle_errors
def issue_cmd(
    intent: str = typer.Argument(..., help=INTENT_HELP),
    verifier: Optional[str] = typer.Option(None, help="Verifying contract address"),
    expiry: Optional[str] = typer.Option(None, help="Expiry in Unix seconds"),
    nonce: Optional[str] = typer.Option(None, help="Nonce (decimal or 0x-hex)"),
    evaluate: bool = typer.Option(False, "--evaluate",
                                  help="Evaluate the policy and issue for the target contract"),
):
    """Issue a capability."""
    if evaluate:
        # Evaluation always binds to the target with default expiry and nonce
        given = [name for name, value in (("--verifier", verifier), ("--expiry", expiry), ("--nonce", nonce))
                 if value is not None]
        if given:
            raise typer.BadParameter(f"{', '.join(given)} cannot be combined with --evaluate")
        _echo_json(_service().evaluate_policy({"txIntent": _load_intent(intent)}))
        return

    body: Dict[str, Any] = {"txIntent": _load_intent(intent), "verifier": verifier}
    if expiry is not None:
        body["expiry"] = expiry
    if nonce is not None:
        body["nonce"] = nonce
    _echo_json(_service().issue_capability(body))


@app.command("verify")
@_handle_errors
def verify_cmd(
    intent: str = typer.Argument(..., help=INTENT_HELP),
    verifier: str = typer.Option(..., help="Verifying contract address"),
    sig: str = typer.Option(..., help="Capability signature (0x-hex)"),
    expiry: str = typer.Option(..., help="Expiry in Unix seconds"),
    nonce: str = typer.Option(..., help="Nonce (decimal or 0x-hex)"),
    issuer: Optional[str] = typer.Option(None, help="Require this issuer address"),
):
    """Verify a capability signature. Exits 1 when the capability is not valid."""
    parsed = CallIntent.parse(_load_intent(intent))
    try:
        result = CapabilityVerifier().verify(parsed, verifier, sig, expiry, nonce)
    except StaleCapabilityError:
        _echo_json({"valid": False, "reason": "stale (expiry)"})
        raise typer.Exit(code=1)

    if issuer and result.valid and not result.signed_by(issuer):
        result = VerificationResult(valid=False, reason=f"signed by {result.recovered_address}, not {issuer}")
    _echo_json(result.to_dict())
    if not result.valid:
        raise typer.Exit(code=1)


@app.command("attest")
@_handle_errors
def attest_cmd(
    intent: str = typer.Argument(..., help=INTENT_HELP),
    expiry: Optional[str] = typer.Option(None, help="Expiry in Unix seconds"),
    nonce: Optional[str] = typer.Option(None, help="Nonce (decimal or 0x-hex)"),
):
    """Export an EAS attestation for an intent."""
    body: Dict[str, Any] = {"txIntent": _load_intent(intent)}
    if expiry is not None:
        body["expiry"] = expiry
    if nonce is not None:
        body["nonce"] = nonce
    _echo_json(_service().export_attestation(body))


@app.command("health")
@_handle_errors
def health_cmd():
    """Show issuer address and policy status."""
    _echo_json(_service().health())


def main():
    app()


if __name__ == "__main__":
    main()
