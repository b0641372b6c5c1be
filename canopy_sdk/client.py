"""
CanopyClient - HTTP client for a Canopy capability service.
"""
import logging
import urllib.parse
from typing import Any, Dict, Mapping, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .exceptions import ResponseError, TransportError
from .models import CallIntent
from .utils import to_hex

IntentLike = Union[CallIntent, Mapping[str, Any]]


def _intent_wire(intent: IntentLike) -> Dict[str, Any]:
    if isinstance(intent, CallIntent):
        return intent.to_wire()
    return dict(intent)


def _field(value: Any) -> Any:
    # Nonces exceed JSON's safe integer range; send them as hex
    if isinstance(value, bytes):
        return to_hex(value)
    if isinstance(value, int) and not isinstance(value, bool) and value > 2**53:
        return hex(value)
    return value


class CanopyClient:
    """
    Client for a Canopy capability service.

    Only ``GET`` requests are retried: issuance and verification are never
    replayed automatically.
    """

    def __init__(
        self,
        base_url: str,
        retry_count: int = 3,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            base_url: Service URL (e.g., "https://canopy.example.com")
            retry_count: Number of retries for GET requests
            timeout: Timeout for HTTP requests in seconds
            session: Optional pre-configured session
            logger: Optional logger instance

        Raises:
            ValueError: If the URL doesn't use https (unless it's localhost/127.0.0.1)
        """
        parsed = urllib.parse.urlparse(base_url)
        host = parsed.netloc.split(':')[0] if parsed.netloc else ''
        is_local = host in ('localhost', '127.0.0.1')
        if parsed.scheme != 'https' and not is_local:
            raise ValueError(f"base_url must use https:// for security (got: {parsed.scheme}://)")

        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

        self.session = session or requests.Session()
        retries = Retry(
            total=retry_count,
            backoff_factor=0.5,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
        )
        self.session.mount("http://", HTTPAdapter(max_retries=retries))
        self.session.mount("https://", HTTPAdapter(max_retries=retries))

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None,
                 accept_invalid: bool = False) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        self.logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            self.logger.error(f"Canopy request failed: {e}")
            raise TransportError(f"Request to {url} failed: {str(e)}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400:
            # /proof/verify answers invalid capabilities with 400 and a verdict body
            if accept_invalid and isinstance(data, dict) and "valid" in data:
                return data
            message = data.get("error", response.text) if isinstance(data, dict) else response.text
            raise ResponseError(
                f"Canopy service returned {response.status_code}: {message}",
                status_code=response.status_code,
                body=data if isinstance(data, dict) else None,
            )

        if not isinstance(data, dict):
            raise ResponseError(f"Invalid JSON response from {url}", status_code=response.status_code)
        return data

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health/ping")

    def evaluate_policy(self, intent: IntentLike) -> Dict[str, Any]:
        return self._request("POST", "/policy/evaluate", {"txIntent": _intent_wire(intent)})

    def issue_capability(
        self,
        intent: IntentLike,
        verifier: str,
        expiry: Optional[int] = None,
        nonce: Optional[Union[int, str]] = None
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"txIntent": _intent_wire(intent), "verifier": verifier}
        if expiry is not None:
            payload["expiry"] = expiry
        if nonce is not None:
            payload["nonce"] = _field(nonce)
        return self._request("POST", "/capability/issue", payload)

    def verify_capability(
        self,
        intent: IntentLike,
        verifier: str,
        capability_sig: Union[str, bytes],
        expiry: int,
        nonce: Union[int, str]
    ) -> Dict[str, Any]:
        """
        Returns:
            The verdict, ``{"valid": True, ...}`` or ``{"valid": False, "reason": ...}``
        """
        payload = {
            "txIntent": _intent_wire(intent),
            "verifier": verifier,
            "capabilitySig": _field(capability_sig),
            "expiry": expiry,
            "nonce": _field(nonce),
        }
        return self._request("POST", "/proof/verify", payload, accept_invalid=True)

    def export_attestation(
        self,
        intent: IntentLike,
        expiry: Optional[int] = None,
        nonce: Optional[Union[int, str]] = None
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"txIntent": _intent_wire(intent)}
        if expiry is not None:
            payload["expiry"] = expiry
        if nonce is not None:
            payload["nonce"] = _field(nonce)
        return self._request("POST", "/attestation/export", payload)
