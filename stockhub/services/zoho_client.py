"""Zoho Inventory REST client (OAuth2 refresh-token flow)."""

import json
import logging
import time
from collections.abc import Callable
from typing import Any

import httpx

from stockhub.core.errors import RemoteApiError

logger = logging.getLogger("stockhub.zoho")

# Seconds before Zoho's stated expiry at which a cached token is refreshed.
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class ZohoTokenProvider:
    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        accounts_url: str,
        http_client: httpx.Client,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._token_url = f"{accounts_url.rstrip('/')}/oauth/v2/token"
        self._http = http_client
        self._clock = clock
        self._access_token: str | None = None
        self._expires_at = 0.0

    def invalidate(self) -> None:
        self._access_token = None
        self._expires_at = 0.0

    def get_access_token(self) -> str:
        if self._access_token and self._clock() < self._expires_at:
            return self._access_token

        try:
            response = self._http.post(
                self._token_url,
                params={
                    "refresh_token": self._refresh_token,
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.HTTPError as exc:
            raise RemoteApiError(f"Zoho token refresh failed: {exc}") from exc

        body = _json_body(response)
        token = body.get("access_token")
        if response.status_code >= 400 or not token:
            message = body.get("error") or body.get("message") or "Zoho token refresh failed"
            raise RemoteApiError(str(message), status_code=response.status_code)

        expires_in = float(body.get("expires_in") or 3600)
        self._access_token = token
        self._expires_at = self._clock() + max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0)
        logger.info(json.dumps({"event": "zoho.token_refreshed", "expires_in": expires_in}))
        return token


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class ZohoInventoryClient:
    def __init__(
        self,
        *,
        token_provider: ZohoTokenProvider,
        organization_id: str,
        api_base_url: str,
        http_client: httpx.Client,
    ):
        self._tokens = token_provider
        self._organization_id = organization_id
        self._base_url = api_base_url.rstrip("/")
        self._http = http_client

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        query = {"organization_id": self._organization_id, **(params or {})}
        url = f"{self._base_url}{path}"
        for attempt in range(2):
            headers = {"Authorization": f"Zoho-oauthtoken {self._tokens.get_access_token()}"}
            try:
                response = self._http.request(method, url, params=query, json=payload, headers=headers)
            except httpx.HTTPError as exc:
                raise RemoteApiError(f"Zoho request to {path} failed: {exc}") from exc
            if response.status_code == 401 and attempt == 0:
                self._tokens.invalidate()
                continue
            break

        body = _json_body(response)
        if response.status_code >= 400 or body.get("code", 0) != 0:
            message = body.get("message") or response.text or f"Zoho returned HTTP {response.status_code}"
            logger.warning(
                json.dumps(
                    {
                        "event": "zoho.request_failed",
                        "method": method,
                        "path": path,
                        "status_code": response.status_code,
                        "zoho_code": body.get("code"),
                        "message": message,
                    }
                )
            )
            raise RemoteApiError(str(message), status_code=response.status_code)
        return body

    def create_transfer_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        body = self._request(
            "POST",
            "/inventory/v1/transferorders",
            params={"ignore_auto_number_generation": "false"},
            payload=payload,
        )
        return body.get("transfer_order") or {}

    def create_invoice(self, payload: dict[str, Any]) -> dict[str, Any]:
        body = self._request("POST", "/inventory/v1/invoices", payload=payload)
        return body.get("invoice") or {}

    def mark_invoice_sent(self, invoice_id: str) -> None:
        self._request("POST", f"/inventory/v1/invoices/{invoice_id}/status/sent")

    def list_branches(self) -> list[dict[str, Any]]:
        body = self._request("GET", "/inventory/v1/branches")
        branches = body.get("branches")
        return branches if isinstance(branches, list) else []

    def list_items(self, *, per_page: int = 200, max_pages: int = 50) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for page in range(1, max_pages + 1):
            body = self._request("GET", "/inventory/v1/items", params={"page": page, "per_page": per_page})
            items.extend(body.get("items") or [])
            if not (body.get("page_context") or {}).get("has_more_page"):
                break
        return items
