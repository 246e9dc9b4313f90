"""
FastAPI Application - Crypto Market Data API

Serves aggregated market data to the dashboard.

Providers (in failover order):
    - CoinGecko (primary)
    - CoinCap (secondary)
    - CoinPaprika (tertiary, list only)

Features:
    - Top coins by market cap, coin detail, price history
    - Search and trending coins
    - Provider health status
    - Watchlists and one-shot price alerts
    - Live price snapshots, watchlist prices and triggered alerts over WebSocket

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8000

Docs:
    - Swagger: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.aggregator import create_aggregator
from core.config import settings, validate_configuration
from core.logging import logger
from core.schemas import AlertCreate, WatchlistCoinAdd, WatchlistCreate
from services.alerts import AlertService
from services.price_stream import PriceBroadcaster, PriceStreamService
from services.watchlists import WatchlistNotFound, WatchlistService


# ============================================
# Lifespan Management
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    # Startup
    logger.info("=== Application Starting ===")
    try:
        validate_configuration()
        await aggregator.initialize()
        await watchlists.initialize()
        try:
            await price_stream.start()
        except Exception as svc_err:
            logger.error(f"Price stream failed to start: {svc_err}")
        logger.info("=== Started Successfully ===")
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    yield

    # Shutdown
    logger.info("=== Shutting Down ===")
    try:
        try:
            await price_stream.stop()
        except Exception as svc_stop_err:
            logger.error(f"Error stopping price stream: {svc_stop_err}")
        await aggregator.shutdown()
        logger.info("=== Shutdown Complete ===")
    except Exception as e:
        logger.error(f"Shutdown error: {e}")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="Coinboard Market Data API",
    description=(
        "Aggregated cryptocurrency market data with multi-provider failover.\n\n"
        "**Providers:** CoinGecko (primary), CoinCap (secondary), CoinPaprika (tertiary)\n\n"
        "## REST Endpoints\n"
        "- `GET /coins` - Top coins by market cap (`?page=1&limit=100`)\n"
        "- `GET /coins/search` - Search coins by name or symbol (`?q=bit`)\n"
        "- `GET /coins/trending` - Trending coins\n"
        "- `GET /coins/status` - Provider health\n"
        "- `GET /coins/{id}` - Coin detail\n"
        "- `GET /coins/{id}/history` - Price history (`?days=7`)\n"
        "- `GET /health` - Health check\n"
        "- `GET|POST /watchlists`, `GET|DELETE /watchlists/{id}` - Watchlists\n"
        "- `POST /watchlists/{id}/coins`, `DELETE /watchlists/{id}/coins/{coin_id}` - Membership\n"
        "- `GET|POST /alerts`, `DELETE /alerts/{id}` - Price alerts\n\n"
        "## WebSocket Streams\n"
        "- `ws://{host}/ws/prices` - Top coin snapshots every few seconds\n"
        "- `ws://{host}/ws/watchlists/{id}` - Snapshots filtered to one watchlist\n"
        "- `ws://{host}/ws/alerts` - Alerts as they trigger\n\n"
        "When every provider is down, responses carry the last known data.\n"
        "Clients should handle reconnects on disconnect."
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

aggregator = create_aggregator()  # Global market data aggregator
watchlists = WatchlistService(aggregator.store, aggregator)
alerts = AlertService(aggregator.store)
broadcaster = PriceBroadcaster()
alert_broadcaster = PriceBroadcaster(replay_latest=False)
price_stream = PriceStreamService(
    aggregator, broadcaster, alerts=alerts, alert_broadcaster=alert_broadcaster
)


def _envelope(data: Any) -> dict:
    return {"success": True, "data": data}


def _dump(items) -> list:
    return [item.model_dump(mode="json") for item in items]


# ============================================
# System Endpoints
# ============================================

@app.get("/", tags=["System"])
async def root():
    """API information and configured providers."""
    return {
        "name": "Coinboard Market Data API",
        "version": "1.0.0",
        "status": "operational",
        "docs": "/docs",
        "providers": aggregator.manager.list_providers()
    }


@app.get("/health", tags=["System"])
async def health_check():
    """Health check - degraded when no provider is currently available."""
    providers = aggregator.source_status()
    return {
        "status": "healthy" if any(p.available for p in providers) else "degraded",
        "providers": {p.name: p.available for p in providers}
    }


# ============================================
# Market Data Endpoints
# ============================================

@app.get("/coins", tags=["Market Data"])
async def list_coins(
    page: int = Query(default=1, ge=1, description="Page number"),
    limit: int = Query(default=100, ge=1, le=250, description="Coins per page")
):
    """
    Top coins ordered by market cap rank.

    Examples:
        GET /coins?page=1&limit=50
    """
    try:
        assets = await aggregator.list_assets(page, limit)
    except Exception as e:
        logger.error(f"Coin list error page={page} limit={limit}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch coins: {str(e)}")
    return _envelope(_dump(assets))


@app.get("/coins/search", tags=["Market Data"])
async def search_coins(q: str = Query(..., max_length=100, description="Name or symbol")):
    """
    Search coins by name or symbol. Queries shorter than 2 characters return nothing.

    Examples:
        GET /coins/search?q=eth
    """
    try:
        hits = await aggregator.search(q)
    except Exception as e:
        logger.error(f"Search error q={q!r}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to search coins: {str(e)}")
    return _envelope(_dump(hits))


@app.get("/coins/trending", tags=["Market Data"])
async def trending_coins():
    """Trending coins; the top 10 by market cap when trending data is unavailable."""
    try:
        assets = await aggregator.trending()
    except Exception as e:
        logger.error(f"Trending error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch trending coins: {str(e)}")
    return _envelope(_dump(assets))


@app.get("/coins/status", tags=["System"])
async def provider_status():
    """Availability of each provider, in failover order."""
    return _envelope(_dump(aggregator.source_status()))


@app.get("/coins/{coin_id}", tags=["Market Data"])
async def get_coin(coin_id: str):
    """
    Coin detail.

    Examples:
        GET /coins/bitcoin
    """
    try:
        asset = await aggregator.get_asset(coin_id)
    except Exception as e:
        logger.error(f"Coin detail error {coin_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch coin: {str(e)}")

    if asset is None:
        raise HTTPException(status_code=404, detail=f"Coin '{coin_id}' not found")
    return _envelope(asset.model_dump(mode="json"))


@app.get("/coins/{coin_id}/history", tags=["Market Data"])
async def get_coin_history(
    coin_id: str,
    days: int = Query(default=7, ge=1, le=365, description="Days of history")
):
    """
    Price history, ascending by timestamp (epoch milliseconds).

    Examples:
        GET /coins/bitcoin/history?days=30
    """
    try:
        points = await aggregator.get_history(coin_id, days)
    except Exception as e:
        logger.error(f"History error {coin_id}/{days}d: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch history: {str(e)}")
    return _envelope(_dump(points))


# ============================================
# Watchlist Endpoints
# ============================================

@app.get("/watchlists", tags=["Watchlists"])
async def list_watchlists():
    """All watchlists, newest first (without coins)."""
    try:
        items = await watchlists.list_all()
    except Exception as e:
        logger.error(f"Watchlist list error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch watchlists: {str(e)}")
    return _envelope(_dump(items))


@app.post("/watchlists", tags=["Watchlists"], status_code=201)
async def create_watchlist(body: WatchlistCreate):
    """
    Create a watchlist.

    Examples:
        POST /watchlists {"name": "Majors"}
    """
    try:
        watchlist = await watchlists.create(body.name)
    except Exception as e:
        logger.error(f"Watchlist create error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create watchlist: {str(e)}")
    return _envelope(watchlist.model_dump(mode="json"))


@app.get("/watchlists/{watchlist_id}", tags=["Watchlists"])
async def get_watchlist(watchlist_id: int):
    """A watchlist with its coins, most recently added first."""
    try:
        detail = await watchlists.get(watchlist_id)
    except Exception as e:
        logger.error(f"Watchlist error {watchlist_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch watchlist: {str(e)}")

    if detail is None:
        raise HTTPException(status_code=404, detail="Watchlist not found")
    return _envelope(detail.model_dump(mode="json"))


@app.delete("/watchlists/{watchlist_id}", tags=["Watchlists"])
async def delete_watchlist(watchlist_id: int):
    if not await watchlists.delete(watchlist_id):
        raise HTTPException(status_code=404, detail="Watchlist not found")
    return {"success": True, "message": "Watchlist deleted"}


@app.post("/watchlists/{watchlist_id}/coins", tags=["Watchlists"], status_code=201)
async def add_watchlist_coin(watchlist_id: int, body: WatchlistCoinAdd):
    """
    Add a coin by its canonical id.

    Examples:
        POST /watchlists/1/coins {"coin_id": "bitcoin"}
    """
    try:
        added = await watchlists.add_coin(watchlist_id, body.coin_id)
    except WatchlistNotFound:
        raise HTTPException(status_code=404, detail="Watchlist not found")

    if not added:
        raise HTTPException(status_code=409, detail="Coin already in watchlist")
    return {"success": True, "message": "Coin added to watchlist"}


@app.delete("/watchlists/{watchlist_id}/coins/{coin_id}", tags=["Watchlists"])
async def remove_watchlist_coin(watchlist_id: int, coin_id: str):
    if not await watchlists.remove_coin(watchlist_id, coin_id.lower()):
        raise HTTPException(status_code=404, detail="Coin not in watchlist")
    return {"success": True, "message": "Coin removed from watchlist"}


# ============================================
# Alert Endpoints
# ============================================

@app.get("/alerts", tags=["Alerts"])
async def list_alerts():
    """All price alerts, newest first, triggered ones included."""
    try:
        items = await alerts.list_all()
    except Exception as e:
        logger.error(f"Alert list error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch alerts: {str(e)}")
    return _envelope(_dump(items))


@app.post("/alerts", tags=["Alerts"], status_code=201)
async def create_alert(body: AlertCreate):
    """
    Create a one-shot price alert. target_price must be positive.

    Examples:
        POST /alerts {"coin_id": "bitcoin", "target_price": 70000, "condition": "above"}
    """
    try:
        alert = await alerts.create(body.coin_id, body.target_price, body.condition)
    except Exception as e:
        logger.error(f"Alert create error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create alert: {str(e)}")
    return _envelope(alert.model_dump(mode="json"))


@app.delete("/alerts/{alert_id}", tags=["Alerts"])
async def delete_alert(alert_id: int):
    if not await alerts.delete(alert_id):
        raise HTTPException(status_code=404, detail="Alert not found")
    return {"success": True, "message": "Alert deleted"}


# ============================================
# WebSocket Endpoints
# ============================================

@app.websocket("/ws/prices")
async def websocket_prices(websocket: WebSocket):
    """
    Live price snapshots of the top coins.

    Messages:
        {"type": "prices", "data": [<coin>, ...]}

    Example:
        ws://localhost:8000/ws/prices
    """
    await websocket.accept()
    logger.info("WS connected: prices")
    queue = broadcaster.subscribe()
    try:
        while True:
            event = await queue.get()
            await websocket.send_json(event)
    except WebSocketDisconnect:
        logger.info("WS disconnected: prices")
    except Exception as e:
        logger.error(f"WS error prices: {e}")
    finally:
        broadcaster.unsubscribe(queue)
        logger.info("WS ended: prices")


@app.websocket("/ws/watchlists/{watchlist_id}")
async def websocket_watchlist(websocket: WebSocket, watchlist_id: int):
    """
    Price snapshots filtered to one watchlist.

    The first message carries every coin of the watchlist; later ones carry the
    watchlist coins present in each top-coins snapshot. Unknown watchlists are
    rejected with close code 1008.

    Example:
        ws://localhost:8000/ws/watchlists/1
    """
    detail = await watchlists.get(watchlist_id)
    if detail is None:
        await websocket.close(code=1008)
        return

    await websocket.accept()
    logger.info(f"WS connected: watchlist {watchlist_id}")
    queue = broadcaster.subscribe()
    try:
        await websocket.send_json({"type": "prices", "data": _dump(detail.coins)})
        while True:
            event = await queue.get()
            ids = set(await watchlists.coin_ids(watchlist_id))
            await websocket.send_json({
                "type": "prices",
                "data": [coin for coin in event["data"] if coin["id"] in ids],
            })
    except WebSocketDisconnect:
        logger.info(f"WS disconnected: watchlist {watchlist_id}")
    except Exception as e:
        logger.error(f"WS error watchlist {watchlist_id}: {e}")
    finally:
        broadcaster.unsubscribe(queue)


@app.websocket("/ws/alerts")
async def websocket_alerts(websocket: WebSocket):
    """
    Alerts as the price stream triggers them.

    Messages:
        {"type": "alerts", "data": [<alert>, ...]}
    """
    await websocket.accept()
    logger.info("WS connected: alerts")
    queue = alert_broadcaster.subscribe()
    try:
        while True:
            event = await queue.get()
            await websocket.send_json(event)
    except WebSocketDisconnect:
        logger.info("WS disconnected: alerts")
    except Exception as e:
        logger.error(f"WS error alerts: {e}")
    finally:
        alert_broadcaster.unsubscribe(queue)


# ============================================
# Error Handlers
# ============================================

@app.exception_handler(500)
async def internal_error_handler(request, exc):
    """Handle 500 errors."""
    logger.error(f"Internal error: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
