"""
HTTP surface serving the cached supply snapshot.
"""

import logging

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware

from lumens.cache import (
    KEY_CIRCULATING_SUPPLY,
    KEY_SNAPSHOT,
    KEY_SNAPSHOT_V1,
    KEY_TOTAL_SUPPLY,
    KEY_TOTAL_SUPPLY_SUM,
    CacheMiss,
    SnapshotCell,
)
from lumens.refresh import Refresher

logger = logging.getLogger(__name__)

NOT_READY = "Supply data not ready"


def create_app(cell: SnapshotCell, refresher: Refresher | None = None) -> FastAPI:
    """Build the app around an injected snapshot cell."""
    app = FastAPI(title="Lumen Supply Stats")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    def cached(key: str) -> Response:
        try:
            body = cell.read(key)
        except CacheMiss:
            logger.warning(f"Cache miss for {key}")
            raise HTTPException(status_code=503, detail=NOT_READY)
        return Response(content=body, media_type="application/json")

    @app.get("/api/lumens")
    def lumens_v1():
        return cached(KEY_SNAPSHOT_V1)

    @app.get("/api/v2/lumens")
    def lumens_v2():
        return cached(KEY_SNAPSHOT)

    # Bare values for CoinMarketCap-style consumers
    @app.get("/api/v2/lumens/total-supply")
    def total_supply():
        return cached(KEY_TOTAL_SUPPLY)

    @app.get("/api/v2/lumens/circulating-supply")
    def circulating_supply():
        return cached(KEY_CIRCULATING_SUPPLY)

    @app.get("/api/v2/lumens/total-supply-sum")
    def total_supply_sum():
        return cached(KEY_TOTAL_SUPPLY_SUM)

    @app.get("/health")
    def health():
        status = refresher.status() if refresher else {"state": None}
        try:
            cell.read(KEY_SNAPSHOT)
            status["ready"] = True
        except CacheMiss:
            status["ready"] = False
        return status

    return app
