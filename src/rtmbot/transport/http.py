"""
REST HTTP client for the gateway's Web API.
"""

from typing import Any, Optional

import httpx

from rtmbot.errors import ProtocolError, TransportError

DEFAULT_API_URL = "https://slack.com/api/"


class HttpClient:
    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_url = api_url.rstrip("/") + "/"
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            headers={"User-Agent": "rtmbot/0.1.0", "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def api_url(self) -> str:
        return self._api_url

    async def post_form(self, method: str, fields: dict[str, str]) -> Any:
        """POST form-encoded ``fields`` to an API method and return the decoded JSON body."""
        try:
            resp = await self._client.post(method, data=fields)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} request failed: {e}") from e
        if resp.status_code >= 400:
            raise TransportError(
                f"HTTP {resp.status_code}: {resp.text[:200]}",
                details={"status_code": resp.status_code},
            )
        try:
            return resp.json()
        except ValueError as e:
            raise ProtocolError(f"{method} returned a non-JSON body: {resp.text[:200]}") from e

    async def close(self) -> None:
        await self._client.aclose()
