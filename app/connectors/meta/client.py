"""LeadLaunch — Meta Graph API Client.

Thin async wrapper over the Graph API: GET, POST with query-string params,
and POST multipart. No retries and no rate-limit handling; failures surface
as MetaAPIError with the remote response body preserved.
"""

import json
from typing import Any, Dict, Optional

import httpx

from app.config import settings
from app.core.logging import get_logger

logger = get_logger("meta.client")


class MetaAPIError(Exception):
    """Raised when Meta API returns an error."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        error_code: int = 0,
        body: Any = None,
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.body = body
        super().__init__(message)

    def details(self) -> str:
        """Remote response body when there is one, else the error text."""
        if self.body is None or self.body == "":
            return str(self)
        if isinstance(self.body, str):
            return self.body
        return json.dumps(self.body)


def get_graph_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Dependency — transport for outbound Graph calls (None = real network)."""
    return None


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class MetaClient:
    """Async HTTP client for the Meta Graph API, bound to one access token."""

    def __init__(
        self,
        access_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.access_token = access_token
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ── Core Request Method ──

    async def _request(
        self,
        method: str,
        url: str,
        params: Dict[str, Any] | None = None,
        data: Dict[str, Any] | None = None,
        files: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Make a single request and return the parsed JSON body."""
        client = await self._get_client()
        try:
            resp = await client.request(
                method, url, params=params, data=data, files=files
            )
            resp.raise_for_status()
            try:
                return resp.json()
            except ValueError as e:
                raise MetaAPIError(
                    "Meta returned a non-JSON response",
                    resp.status_code,
                    body=resp.text,
                ) from e

        except httpx.HTTPStatusError as e:
            body = _error_body(e.response)
            error = body.get("error", {}) if isinstance(body, dict) else {}
            error_msg = error.get("message") or str(e)
            raise MetaAPIError(
                error_msg,
                e.response.status_code,
                error.get("code", 0),
                body=body,
            ) from e

        except httpx.RequestError as e:
            raise MetaAPIError(f"Request to Meta failed: {e}") from e

    def _graph_url(self, path: str) -> str:
        return f"{settings.graph_base}/{path.lstrip('/')}"

    def _with_token(self, params: Dict[str, Any] | None) -> Dict[str, Any]:
        merged = dict(params or {})
        merged["access_token"] = self.access_token
        return merged

    # ── Graph Verbs ──

    async def get(self, path: str, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
        return await self._request("GET", self._graph_url(path), self._with_token(params))

    async def post_params(
        self, path: str, params: Dict[str, Any] | None = None
    ) -> Dict[str, Any]:
        """POST with every parameter in the query string and an empty body."""
        return await self._request("POST", self._graph_url(path), self._with_token(params))

    async def post_multipart(
        self,
        path: str,
        files: Dict[str, Any],
        data: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """POST a multipart form, used for creative uploads."""
        return await self._request(
            "POST",
            self._graph_url(path),
            self._with_token(None),
            data=data or None,
            files=files,
        )

    # ── OAuth ──

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange an OAuth authorization code for an access token."""
        params = {
            "client_id": settings.meta_app_id,
            "client_secret": settings.meta_app_secret,
            "redirect_uri": settings.meta_redirect_uri,
            "code": code,
        }
        return await self._request(
            "GET", self._graph_url("/oauth/access_token"), params
        )
