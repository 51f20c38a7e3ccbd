from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.routes import router
from app.config.logging_config import setup_logging
from app.config.settings import Settings, get_settings
from app.integrations.coingecko_rest import CoinGeckoRestClient
from app.integrations.kv_store import InMemoryKeyValueStore, JsonFileKeyValueStore
from app.services.tracker import CoinTrackerService

logger = logging.getLogger(__name__)


def build_tracker_service(settings: Settings) -> CoinTrackerService:
    if settings.TRACKER_STORE_PATH:
        store = JsonFileKeyValueStore(settings.TRACKER_STORE_PATH)
    else:
        store = InMemoryKeyValueStore()
    return CoinTrackerService(
        store=store,
        price_provider=CoinGeckoRestClient(
            settings.COINGECKO_BASE_URL,
            timeout=settings.TRACKER_HTTP_TIMEOUT_SEC,
        ),
        default_ids=settings.TRACKER_DEFAULT_COINS,
        refresh_interval_sec=settings.TRACKER_REFRESH_INTERVAL_SEC,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(app.state.get_settings().TRACKER_LOG_LEVEL)
    service = app.state.tracker_service
    service.bootstrap()
    logger.info("[APP][startup] tracked=%s", ",".join(service.tracked()))
    try:
        yield
    finally:
        service.shutdown()
        logger.info("[APP][shutdown]")


app = FastAPI(title="Coin Price Sync", version="0.1.0", lifespan=lifespan)
app.include_router(router, prefix="/v1")

app.state.get_settings = get_settings
app.state.tracker_service = build_tracker_service(get_settings())
