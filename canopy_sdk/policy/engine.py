"""
Policy engine: pluggable allow/deny decisions for call intents.

The engine is fail-open by default. While no backend is usable (still
attaching, or failed to load) and when a backend raises during evaluation,
it answers Allow so that issuance never hard-fails on policy availability.
``fail_closed=True`` turns those cases into Deny. An engine with no backend
configured at all always allows.
"""
import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .._rate_limited_log import rate_limited_log
from ..exceptions import PolicyBackendError
from ..models import CallIntent, Decision
from .backends import PolicyBackend, load_backend

logger = logging.getLogger(__name__)


class PolicyStatus(str, Enum):
    UNCONFIGURED = "unconfigured"
    WARMING = "warming"
    READY = "ready"
    DEGRADED = "degraded"


def interpret_result(result: Any) -> Decision:
    """
    Convert a backend result into a Decision.

    Accepts OPA's result set or a plain mapping. Only a literal ``True``
    allow flag allows.
    """
    if isinstance(result, list):
        first = result[0] if result else None
        result = first.get("result") if isinstance(first, dict) else None
    if not isinstance(result, dict):
        return Decision.deny()

    reasons = result.get("reasons")
    reasons = [str(r) for r in reasons] if isinstance(reasons, list) else []
    if result.get("allow") is True:
        return Decision.allow(*reasons)
    return Decision.deny(*reasons)


def _unavailable(status: PolicyStatus, fail_closed: bool) -> Decision:
    if fail_closed:
        return Decision.deny(f"policy-unavailable: {status.value}")
    return Decision.allow()


class NoPolicy:
    """No backend configured: allow everything."""
    status = PolicyStatus.UNCONFIGURED
    mode = "allow-all"
    error = None

    def evaluate(self, intent: CallIntent) -> Decision:
        return Decision.allow()


class WarmingPolicy:
    """Backend configured but not yet attached."""
    status = PolicyStatus.WARMING
    mode = "warming"
    error = None

    def __init__(self, fail_closed: bool = False):
        self.fail_closed = fail_closed

    def evaluate(self, intent: CallIntent) -> Decision:
        return _unavailable(self.status, self.fail_closed)


class DegradedPolicy:
    """Backend failed to load; the error is kept for status reporting."""
    status = PolicyStatus.DEGRADED
    mode = "warming"

    def __init__(self, error: str, fail_closed: bool = False):
        self.error = error
        self.fail_closed = fail_closed

    def evaluate(self, intent: CallIntent) -> Decision:
        return _unavailable(self.status, self.fail_closed)


class ReadyPolicy:
    """Loaded backend."""
    status = PolicyStatus.READY
    error = None

    def __init__(self, backend: PolicyBackend, fail_closed: bool = False,
                 logger: Optional[logging.Logger] = None):
        self.backend = backend
        self.fail_closed = fail_closed
        self.logger = logger or logging.getLogger(__name__)

    @property
    def mode(self) -> str:
        return getattr(self.backend, "mode", "python")

    def evaluate(self, intent: CallIntent) -> Decision:
        try:
            result = self.backend.evaluate(intent.to_wire())
        except Exception as e:
            reason = f"policy-error: {e}"
            rate_limited_log(f"Policy evaluation failed: {e}", logger_instance=self.logger)
            if self.fail_closed:
                return Decision.deny(reason)
            return Decision.allow(reason)
        return interpret_result(result)


PolicyVariant = Union[NoPolicy, WarmingPolicy, ReadyPolicy, DegradedPolicy]


def attach_backend(
    location: str,
    loader: Callable[[str], PolicyBackend] = load_backend,
    fail_closed: bool = False,
    logger: Optional[logging.Logger] = None
) -> Union[ReadyPolicy, DegradedPolicy]:
    """
    Load a backend and wrap it in the matching policy variant.

    Never raises: load failures produce a DegradedPolicy carrying the error.
    """
    log = logger or logging.getLogger(__name__)
    try:
        backend = loader(location)
    except Exception as e:
        error = str(e) or type(e).__name__
        if not isinstance(e, PolicyBackendError):
            error = f"{type(e).__name__}: {error}"
        log.error(f"Policy backend failed to load from {location}: {error}")
        return DegradedPolicy(error, fail_closed=fail_closed)
    log.info("Policy backend ready (%s)", getattr(backend, "mode", "python"))
    return ReadyPolicy(backend, fail_closed=fail_closed, logger=log)


class PolicyEngine:
    """
    Holds the current policy variant and attaches the backend once.

    Status only moves forward: unconfigured/warming -> ready or degraded.
    """

    def __init__(
        self,
        location: Optional[str] = None,
        fail_closed: bool = False,
        loader: Callable[[str], PolicyBackend] = load_backend,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            location: Backend location (.wasm path or ``module:attribute``); None for allow-all
            fail_closed: Deny instead of allow when the backend is unavailable or errors
            loader: Function turning a location into a backend
            logger: Optional logger instance
        """
        self.location = location
        self.fail_closed = fail_closed
        self.loader = loader
        self.logger = logger or logging.getLogger(__name__)
        self._variant: PolicyVariant = NoPolicy() if location is None else WarmingPolicy(fail_closed)
        self._attach_lock = threading.Lock()

    @classmethod
    def with_backend(cls, backend: PolicyBackend, fail_closed: bool = False) -> "PolicyEngine":
        """Engine with an already loaded backend (ready immediately)."""
        engine = cls(location="<in-memory>", fail_closed=fail_closed, loader=lambda _location: backend)
        engine.init()
        return engine

    @property
    def state(self) -> PolicyStatus:
        return self._variant.status

    def init(self) -> PolicyStatus:
        """
        Attach the backend synchronously. Failures are recorded, not raised.

        Returns:
            Resulting status
        """
        with self._attach_lock:
            if self._variant.status is not PolicyStatus.WARMING:
                return self._variant.status
            self._variant = attach_backend(self.location, self.loader, self.fail_closed, self.logger)
            return self._variant.status

    def start(self) -> Optional[threading.Thread]:
        """
        Attach the backend on a background thread.

        Returns:
            The started thread, or None if there is nothing to attach
        """
        if self._variant.status is not PolicyStatus.WARMING:
            return None
        thread = threading.Thread(target=self.init, name="canopy-policy-init", daemon=True)
        thread.start()
        return thread

    def status(self) -> Dict[str, Any]:
        variant = self._variant
        result: Dict[str, Any] = {"mode": variant.mode, "status": variant.status.value}
        if variant.error:
            result["error"] = variant.error
        if self.fail_closed:
            result["failClosed"] = True
        return result

    def evaluate(self, intent: CallIntent) -> Decision:
        """Evaluate an intent against the current policy variant."""
        decision = self._variant.evaluate(intent)
        if not decision.allowed:
            self.logger.info("Policy denied call to %s: %s", intent.target, "; ".join(decision.reasons) or "no reason")
        return decision
