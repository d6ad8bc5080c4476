"""Client for the external text compression (ScaleDown) API."""
import time
import logging
from typing import Any, Dict, Optional
import httpx

from config import SCALEDOWN_API_KEY, SCALEDOWN_API_URL, SCALEDOWN_TIMEOUT
from services.errors import AuthFailure, TransportFailure

logger = logging.getLogger(__name__)

# Sentinels returned instead of compressed text. The adapter rejects any
# result containing "unavailable" or "Invalid".
UNAVAILABLE_SENTINEL = "Compression unavailable"
AUTH_FAILURE_SENTINEL = "Invalid Key"


class CompressionClient:
    """Wrapper for the compression service's raw compress endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = SCALEDOWN_API_KEY,
        api_url: str = SCALEDOWN_API_URL,
        timeout: float = SCALEDOWN_TIMEOUT
    ):
        """
        Initialize the compression client.

        Args:
            api_key: Compression service API key. Without one every call
                returns UNAVAILABLE_SENTINEL.
            api_url: Compress endpoint URL
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout

        if not api_key:
            logger.warning("SCALEDOWN_API_KEY not set; page compression is disabled")
        else:
            logger.info(f"Initialized CompressionClient for {api_url}")

    def compress(self, context: str, prompt: str, model: str, rate: float) -> str:
        """
        Compress `context` according to `prompt`.

        Args:
            context: Page text to compress
            prompt: Cleaning/restructuring instruction
            model: Model name the service should use
            rate: Aggressiveness; 0.95 keeps ~95% of the content

        Returns:
            Compressed text, or a sentinel string when no key is configured
            or the key is rejected

        Raises:
            TransportFailure: Network error, timeout, non-2xx status, or a
                response without a compressed_prompt
        """
        if not self.api_key:
            return UNAVAILABLE_SENTINEL

        try:
            data = self._post({
                "context": context,
                "prompt": prompt,
                "model": model,
                "scaledown": {"rate": rate},
            })
        except AuthFailure as e:
            logger.error(f"Compression auth failure: {e}", extra={"status_code": e.status_code})
            return AUTH_FAILURE_SENTINEL

        compressed = _find_compressed_prompt(data)
        if compressed is None:
            raise TransportFailure("Compression response has no compressed_prompt")
        return compressed

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "x-api-key": self.api_key,
            "Content-Type": "application/json"
        }

        start_time = time.time()
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.api_url, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            raise TransportFailure(f"Compression request timed out after {self.timeout}s") from e
        except httpx.RequestError as e:
            raise TransportFailure(f"Network error: {str(e)}") from e

        elapsed = time.time() - start_time

        if response.status_code in (401, 403):
            raise AuthFailure(response.status_code)

        if response.status_code < 200 or response.status_code >= 300:
            raise TransportFailure(
                f"Compression API error {response.status_code}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportFailure("Compression API returned invalid JSON") from e

        logger.debug(f"Compression request completed in {elapsed:.2f}s")
        return data if isinstance(data, dict) else {}


def _find_compressed_prompt(data: Dict[str, Any]) -> Optional[str]:
    """The service nests the result under "results" on some plans."""
    results = data.get("results")
    if isinstance(results, dict) and isinstance(results.get("compressed_prompt"), str):
        return results["compressed_prompt"]
    if isinstance(data.get("compressed_prompt"), str):
        return data["compressed_prompt"]
    return None
