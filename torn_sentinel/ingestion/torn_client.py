"""HTTP clients for the Torn API and the YATA foreign-stock export."""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping

import httpx

from ..config import constants
from ..etl.models import StockItem
from ..etl.normalizer import parse_foreign_stock

logger = logging.getLogger(__name__)

_ERROR_MESSAGES = {
    0: "Could not connect to Torn API. Please try again later.",
    1: "Empty API key.",
    2: "Invalid API key. Please check your key and try again.",
    5: "Too many requests. Please wait a moment.",
    8: "IP temporarily blocked. Please try again in a few minutes.",
    9: "API system disabled. Please try again later.",
    10: "Player is in federal jail.",
    13: "This action is not available while traveling.",
    16: "Too many requests. Rate limited.",
    17: "Backend error. Please try again later.",
}


class TornApiError(RuntimeError):
    def __init__(self, message: str, code: int = 0) -> None:
        super().__init__(message)
        self.code = code

    @property
    def user_message(self) -> str:
        return _ERROR_MESSAGES.get(self.code, str(self))


def _decode(response: httpx.Response) -> Any:
    if response.status_code >= 400:
        raise TornApiError(
            f"HTTP {response.status_code}: {response.reason_phrase}",
            response.status_code,
        )
    try:
        data = response.json()
    except ValueError as exc:
        raise TornApiError(f"invalid JSON body: {exc}") from exc
    if isinstance(data, Mapping) and isinstance(data.get("error"), Mapping):
        error = data["error"]
        raise TornApiError(str(error.get("error") or "unknown error"), int(error.get("code") or 0))
    return data


class TornClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = constants.DEFAULT_TORN_API_BASE_URL,
        v2_base_url: str = constants.DEFAULT_TORN_API_V2_BASE_URL,
        user_agent: str = constants.DEFAULT_USER_AGENT,
        timeout: float = constants.DEFAULT_REQUEST_TIMEOUT,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not api_key:
            raise TornApiError("empty API key", 1)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._v2_base_url = v2_base_url.rstrip("/")
        self._http_client = http_client or httpx.Client(
            timeout=timeout, headers={"User-Agent": user_agent}
        )

    def __enter__(self) -> "TornClient":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def close(self) -> None:
        closeable = getattr(self._http_client, "close", None)
        if callable(closeable):
            closeable()

    def _request(self, url: str, params: Mapping[str, str]) -> Any:
        query = dict(params)
        query["key"] = self._api_key
        start = time.monotonic()
        try:
            response = self._http_client.get(url, params=query)
        except httpx.TimeoutException as exc:
            raise TornApiError("Request timed out") from exc
        except httpx.HTTPError as exc:
            raise TornApiError(f"Network error: {exc}") from exc
        logger.debug(
            "torn request %s status=%s %.0fms",
            url,
            response.status_code,
            (time.monotonic() - start) * 1000.0,
        )
        return _decode(response)

    def get(self, section: str, selections: str, **params: str) -> Any:
        query = {"selections": selections, **params}
        return self._request(f"{self._base_url}/{section}/", query)

    def get_v2(self, path: str, **params: str) -> Any:
        return self._request(f"{self._v2_base_url}/{path.lstrip('/')}", params)

    def fetch_account_payload(
        self,
        selections: str = constants.DEFAULT_ACCOUNT_SELECTIONS,
        listing_selections: str = constants.DEFAULT_LISTING_SELECTIONS,
    ) -> dict[str, Any]:
        """Merged v1 user selections and v2 listings, ready for ``build_snapshot``."""

        payload: dict[str, Any] = dict(self.get("user", selections))
        listings = self.get_v2("user", selections=listing_selections)
        if isinstance(listings, Mapping):
            payload.update(listings)
        return payload


class YataClient:
    def __init__(
        self,
        url: str = constants.DEFAULT_YATA_URL,
        *,
        user_agent: str = constants.DEFAULT_USER_AGENT,
        timeout: float = constants.DEFAULT_REQUEST_TIMEOUT,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._url = url
        self._http_client = http_client or httpx.Client(
            timeout=timeout, headers={"User-Agent": user_agent}
        )

    def close(self) -> None:
        closeable = getattr(self._http_client, "close", None)
        if callable(closeable):
            closeable()

    def fetch_stock(self) -> dict[str, list[StockItem]]:
        """Live foreign stock by region; empty when the export is unavailable."""

        try:
            response = self._http_client.get(self._url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("YATA fetch failed: %s", exc)
            return {}
        return parse_foreign_stock(payload)
