from __future__ import annotations

import logging
from typing import Any

import requests

from core.exceptions import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class GatewayClient:
    """
    Thin JSON-over-HTTP client shared by the provider adapters.

    Subclasses provide auth headers and pull the provider's error message
    out of a failed response body.
    """

    provider = ""

    def __init__(self, base_url: str, *, timeout: int = DEFAULT_TIMEOUT, session: requests.Session | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def auth_headers(self) -> dict[str, str]:
        return {}

    def error_message(self, payload: dict[str, Any]) -> tuple[str, str | None]:
        return "", None

    def request(self, method: str, path: str, *, json: Any = None, params: dict | None = None) -> dict[str, Any]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        headers.update(self.auth_headers())
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method,
                url,
                json=json,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("%s %s %s failed: %s", self.provider, method, path, exc)
            raise ProviderError(f"{self.provider} request failed: {exc}") from exc

        try:
            payload = resp.json() if resp.content else {}
        except ValueError:
            payload = {}

        if resp.status_code >= 400:
            message, code = self.error_message(payload if isinstance(payload, dict) else {})
            if not message:
                message = f"{self.provider} API error (status {resp.status_code})"
            logger.warning("%s %s %s -> %s: %s", self.provider, method, path, resp.status_code, message)
            raise ProviderError(message, code=code, http_status=resp.status_code)

        return payload if isinstance(payload, dict) else {"data": payload}

    def get(self, path: str, params: dict | None = None) -> dict[str, Any]:
        return self.request("GET", path, params=params)

    def post(self, path: str, body: Any = None) -> dict[str, Any]:
        return self.request("POST", path, json=body)

    def put(self, path: str, body: Any = None) -> dict[str, Any]:
        return self.request("PUT", path, json=body)

    def delete(self, path: str) -> dict[str, Any]:
        return self.request("DELETE", path)
