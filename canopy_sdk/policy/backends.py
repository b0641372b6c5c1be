"""
Policy backends.

A backend receives the intent in wire form and returns either OPA's result
set (``[{"result": {"allow": bool, "reasons": [...]}}]``) or a plain
``{"allow": bool, "reasons": [...]}`` mapping.
"""
import importlib
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Protocol

from ..exceptions import PolicyBackendError

logger = logging.getLogger(__name__)


class PolicyBackend(Protocol):
    """Protocol for loaded policy backends"""
    mode: str

    def evaluate(self, input: Dict[str, Any]) -> Any:
        ...


def ensure_opa_installed():
    """
    Check that the OPA WASM runtime is importable.

    Raises:
        PolicyBackendError: With installation instructions if not found
    """
    try:
        import opa_wasm  # noqa: F401
        return True
    except ImportError as e:
        raise PolicyBackendError(
            "OPA WASM policies require additional dependencies: opa-wasm. "
            "Please install with: pip install canopy-sdk[opa]"
        ) from e


class OpaWasmBackend:
    """Compiled OPA (Rego) policy evaluated through opa-wasm."""
    mode = "opa-wasm"

    def __init__(self, policy: Any):
        self._policy = policy

    @classmethod
    def from_file(cls, path: str) -> "OpaWasmBackend":
        wasm_path = Path(path)
        if not wasm_path.is_file():
            raise PolicyBackendError(f"Policy bundle not found: {path}")
        ensure_opa_installed()
        from opa_wasm import OPAPolicy

        policy = OPAPolicy(str(wasm_path))
        policy.set_data({})
        logger.info("Loaded OPA policy from %s", path)
        return cls(policy)

    def evaluate(self, input: Dict[str, Any]) -> Any:
        return self._policy.evaluate(input)


class CallableBackend:
    """Policy implemented as a Python callable."""
    mode = "python"

    def __init__(self, fn: Callable[[Dict[str, Any]], Any]):
        if not callable(fn):
            raise PolicyBackendError(f"Policy backend {fn!r} is not callable")
        self._fn = fn

    @classmethod
    def from_reference(cls, reference: str) -> "CallableBackend":
        """Load ``package.module:attribute``."""
        module_name, _, attr = reference.partition(":")
        if not module_name or not attr:
            raise PolicyBackendError(f"Policy reference must look like 'module:attribute' (got {reference!r})")
        try:
            module = importlib.import_module(module_name)
            fn = getattr(module, attr)
        except (ImportError, AttributeError) as e:
            raise PolicyBackendError(f"Cannot load policy {reference}: {e}") from e
        return cls(fn)

    def evaluate(self, input: Dict[str, Any]) -> Any:
        return self._fn(input)


def load_backend(location: str) -> PolicyBackend:
    """
    Load a backend from its configured location.

    Args:
        location: Path to a ``.wasm`` bundle, or ``package.module:attribute``

    Raises:
        PolicyBackendError: If the backend cannot be loaded
    """
    if location.endswith(".wasm"):
        return OpaWasmBackend.from_file(location)
    if ":" in location:
        return CallableBackend.from_reference(location)
    raise PolicyBackendError(f"Unrecognized policy location: {location}")
