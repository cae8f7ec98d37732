"""
Remote Provider

Loads content items from an HTTP JSON endpoint.
Supports header injection, bearer or API-key auth, and a dotted path
to locate the item array inside an arbitrary response envelope.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .base import BaseProvider, ProviderResult

logger = logging.getLogger("pathfinder.providers.remote")


def resolve_path(payload: Any, data_path: str) -> Any:
    """
    Walk a dotted path through nested dicts and lists.

    "data.items" -> payload["data"]["items"]; numeric segments index lists.
    An empty path returns the payload itself. Missing segments return None.
    """
    if not data_path:
        return payload

    current = payload
    for segment in data_path.split("."):
        if isinstance(current, dict):
            current = current.get(segment)
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


class RemoteProvider(BaseProvider):
    """
    Provider backed by a remote HTTP API.

    Usage:
        provider = RemoteProvider(
            url="https://lms.example.com/api/courses",
            auth_type="bearer",
            auth_token="...",
            data_path="data.courses",
        )
    """

    def __init__(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        auth_type: Optional[str] = None,  # "bearer" or "api_key"
        auth_token: str = "",
        api_key_header: str = "X-API-Key",
        data_path: str = "",
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        super().__init__("remote")
        self.url = url
        self.method = method.upper()
        self.params = params or {}
        self.body = body
        self.data_path = data_path
        self.timeout = timeout
        self._headers = self._build_headers(headers or {}, auth_type, auth_token, api_key_header)
        self._http = http_client or httpx.Client(timeout=timeout)

    @staticmethod
    def _build_headers(
        headers: Dict[str, str],
        auth_type: Optional[str],
        auth_token: str,
        api_key_header: str,
    ) -> Dict[str, str]:
        merged = {"Accept": "application/json", **headers}
        if auth_token:
            if auth_type == "bearer":
                merged["Authorization"] = f"Bearer {auth_token}"
            elif auth_type == "api_key":
                merged[api_key_header] = auth_token
        return merged

    def load_data(self, config) -> ProviderResult:
        try:
            response = self._http.request(
                self.method,
                self.url,
                headers=self._headers,
                params=self.params,
                json=self.body if self.method != "GET" else None,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("Remote load failed for %s: %s", self.url, e)
            return ProviderResult.failed(f"Request to {self.url} failed: {e}")

        if response.status_code >= 400:
            return ProviderResult.failed(
                f"Remote source returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError:
            return ProviderResult.failed("Remote source did not return JSON")

        data = resolve_path(payload, self.data_path)
        if not isinstance(data, list):
            return ProviderResult.failed(
                f"No item array at path '{self.data_path or '<root>'}'",
                status_code=response.status_code,
            )

        items = [item for item in data if isinstance(item, dict)]
        if len(items) != len(data):
            logger.warning("Skipped %d non-object entries from %s", len(data) - len(items), self.url)

        return ProviderResult.ok(items, status_code=response.status_code, url=self.url)

    def get_metadata(self) -> Dict[str, Any]:
        meta = super().get_metadata()
        meta.update({"url": self.url, "method": self.method, "data_path": self.data_path})
        return meta
