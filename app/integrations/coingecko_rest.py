from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from app.errors import NetworkUnavailableError, RemoteApiError

logger = logging.getLogger(__name__)


class CoinGeckoRestClient:
    """Minimal CoinGecko v3 client: batched market quotes, search, details and ping."""

    DEFAULT_BASE_URL = "https://api.coingecko.com/api/v3"
    SEARCH_LIMIT = 10

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        session: Optional[Any] = None,
        timeout: float = 10.0,
        vs_currency: str = "usd",
    ) -> None:
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.session = session or requests
        self.timeout = timeout
        self.vs_currency = vs_currency

    @staticmethod
    def _to_float(value: Any, default: float = 0.0) -> float:
        try:
            if value is None or value == "":
                return default
            return float(value)
        except (TypeError, ValueError):
            return default

    @staticmethod
    def _to_optional_float(value: Any) -> float | None:
        try:
            if value is None or value == "":
                return None
            return float(value)
        except (TypeError, ValueError):
            return None

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise NetworkUnavailableError(f"{path}: {exc}") from exc
        except requests.RequestException as exc:
            raise RemoteApiError(f"{path}: {exc}") from exc

        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = getattr(response, "status_code", None)
            raise RemoteApiError(f"{path}: http {status}", status_code=status) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise RemoteApiError(f"{path}: response is not JSON") from exc

    def get_markets(self, coin_ids: List[str]) -> List[Dict[str, Any]]:
        """Fetch market rows for every id in one request.

        Rows are normalized to the snapshot field names; numeric fields the
        provider leaves null fall back to 0.0.
        """
        if not coin_ids:
            return []

        payload = self._get(
            "/coins/markets",
            params={
                "vs_currency": self.vs_currency,
                "ids": ",".join(coin_ids),
                "order": "market_cap_desc",
                "per_page": len(coin_ids),
                "page": 1,
                "sparkline": "false",
                "price_change_percentage": "24h",
            },
        )
        if not isinstance(payload, list):
            raise RemoteApiError("/coins/markets: expected a JSON array")

        rows: List[Dict[str, Any]] = []
        for item in payload:
            if not isinstance(item, dict) or not item.get("id"):
                raise RemoteApiError("/coins/markets: row without id")
            rows.append(
                {
                    "id": str(item["id"]),
                    "symbol": str(item.get("symbol") or "").upper(),
                    "display_name": str(item.get("name") or item["id"]),
                    "price": self._to_float(item.get("current_price")),
                    "change_24h_pct": self._to_float(item.get("price_change_percentage_24h")),
                    "market_cap": self._to_float(item.get("market_cap")),
                    "image_url": str(item.get("image") or ""),
                }
            )
        logger.debug("[PROVIDER][markets] requested=%d received=%d", len(coin_ids), len(rows))
        return rows

    def search(self, query: str) -> List[Dict[str, str]]:
        payload = self._get("/search", params={"query": query})
        coins = payload.get("coins") if isinstance(payload, dict) else None
        if not isinstance(coins, list):
            raise RemoteApiError("/search: missing coins array")

        out: List[Dict[str, str]] = []
        for coin in coins[: self.SEARCH_LIMIT]:
            if not isinstance(coin, dict) or not coin.get("id"):
                continue
            out.append(
                {
                    "id": str(coin["id"]),
                    "name": str(coin.get("name") or coin["id"]),
                    "symbol": str(coin.get("symbol") or "").upper(),
                    "thumb": str(coin.get("thumb") or ""),
                }
            )
        return out

    def get_coin_details(self, coin_id: str) -> Dict[str, Any]:
        payload = self._get(
            f"/coins/{coin_id}",
            params={
                "localization": "false",
                "tickers": "false",
                "market_data": "true",
                "community_data": "false",
                "developer_data": "false",
                "sparkline": "false",
            },
        )
        if not isinstance(payload, dict) or not payload.get("id"):
            raise RemoteApiError(f"/coins/{coin_id}: missing id")

        image = payload.get("image")
        market = payload.get("market_data") if isinstance(payload.get("market_data"), dict) else {}
        current_price = market.get("current_price") if isinstance(market.get("current_price"), dict) else {}
        market_cap = market.get("market_cap") if isinstance(market.get("market_cap"), dict) else {}

        return {
            "id": str(payload["id"]),
            "symbol": str(payload.get("symbol") or "").upper(),
            "name": str(payload.get("name") or payload["id"]),
            "image_url": str(image.get("large") or image.get("small") or "") if isinstance(image, dict) else "",
            "price": self._to_optional_float(current_price.get(self.vs_currency)),
            "change_24h_pct": self._to_optional_float(market.get("price_change_percentage_24h")),
            "market_cap": self._to_optional_float(market_cap.get(self.vs_currency)),
        }

    def ping(self) -> bool:
        try:
            self._get("/ping")
        except (NetworkUnavailableError, RemoteApiError) as exc:
            logger.warning("[PROVIDER][ping_failed] error=%s", exc)
            return False
        return True
