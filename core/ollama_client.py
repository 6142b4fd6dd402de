"""
HTTP wrapper for the Ollama vision model server.

One OllamaClient is created at startup and shared by the invoice workers;
requests.Session is safe for concurrent use of independent requests.

Usage:
    client = OllamaClient("http://localhost:11434", "llava:latest")

    # One page image (base64 PNG) per call
    text = client.generate(prompt, [page_b64], temperature=0.1, top_p=0.9)

    # Health check
    if not client.test_connection():
        ...
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from .exceptions import LLMServiceError


class OllamaClient:
    """
    Thin client for the two Ollama endpoints the application uses.

    - POST /api/generate: single non-streaming completion with images
    - GET  /api/tags:     installed model listing (health check)

    Attributes:
        base_url: Ollama server root, without trailing slash
        model: Model name sent with every generate request
        timeout_seconds: Per-request timeout
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout_seconds: float = 120.0,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        self._logger = logger or logging.getLogger("print_queue_web.core.ollama_client")

    def generate(
        self,
        prompt: str,
        images: List[str],
        temperature: float = 0.1,
        top_p: float = 0.9,
    ) -> str:
        """
        Run one completion and return the raw ``response`` text.

        Args:
            prompt: Instruction text
            images: Base64-encoded images attached to the prompt
            temperature: Sampling temperature
            top_p: Nucleus sampling cutoff

        Returns:
            The model's raw text, unparsed

        Raises:
            LLMServiceError: Transport failure, HTTP error, or malformed body
        """
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "images": images,
            "stream": False,
            "options": {
                "temperature": temperature,
                "top_p": top_p,
            },
        }

        body = self._request("POST", "/api/generate", json=payload)

        if body.get("error"):
            raise LLMServiceError(f"Ollama error: {body['error']}")

        response = body.get("response")
        if not isinstance(response, str):
            raise LLMServiceError("Ollama response is missing the 'response' field")

        return response

    def list_models(self) -> List[str]:
        """Names of the models installed on the server."""
        body = self._request("GET", "/api/tags")
        models = body.get("models") or []
        return [m.get("name", "") for m in models if isinstance(m, dict)]

    def test_connection(self) -> bool:
        """
        Check that the server answers and the configured model is installed.

        Never raises; failures are logged and reported as False.
        """
        try:
            models = self.list_models()
        except LLMServiceError as e:
            self._logger.error(f"Ollama connection test failed: {e}")
            return False

        if self.model not in models:
            self._logger.warning(
                f"Model {self.model} not found. Available models: {', '.join(models) or 'none'}"
            )
            return False

        return True

    def close(self) -> None:
        self._session.close()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.request(method, url, timeout=self.timeout_seconds, **kwargs)
        except requests.RequestException as e:
            self._logger.error(f"Ollama request failed: {e}")
            raise LLMServiceError(f"Ollama request failed: {e}") from e

        if resp.status_code >= 400:
            self._logger.error(f"Ollama HTTP {resp.status_code}: {resp.text[:500]}")
            raise LLMServiceError(
                f"Ollama HTTP {resp.status_code}: {resp.text[:200]}",
                status=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise LLMServiceError(f"Invalid JSON from Ollama: {e}") from e

        if not isinstance(body, dict):
            raise LLMServiceError("Unexpected Ollama response body")

        return body
