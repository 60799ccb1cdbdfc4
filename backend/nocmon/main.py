# ==============================================================================
# == backend/nocmon/main.py - NOC Facility Monitoring Backend                 ==
# ==============================================================================

import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List

from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError

from . import __version__, auth, schemas
from .broadcaster import BroadcastLoop
from .config import settings
from .database import DatabasePools, DatabaseUnavailable
from .datasource import DataSource, FetchError
from .history import DEFAULT_RANGE, HistoricalQueryService, InvalidExportType
from .websocket import SessionRegistry, run_session

# Logging configuration
_handlers: List[logging.Handler] = [logging.StreamHandler()]
if settings.LOG_FILE:
    _handlers.append(logging.FileHandler(settings.LOG_FILE, encoding='utf-8'))

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - NOC - %(levelname)s - %(message)s',
    handlers=_handlers,
)
logger = logging.getLogger(__name__)

# ============================================================================
# LIFESPAN MANAGEMENT
# ============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 NOC Monitoring Backend starting...")

    pools: DatabasePools = app.state.pools_factory()
    try:
        await pools.connect(settings.DB_CONNECT_RETRIES, settings.DB_CONNECT_DELAY)
    except DatabaseUnavailable as e:
        logger.critical(f"Fatal database connection error: {e}")
        await pools.dispose()
        raise

    datasource = DataSource(pools)
    registry = SessionRegistry()
    broadcaster = BroadcastLoop(datasource, registry)

    app.state.pools = pools
    app.state.datasource = datasource
    app.state.history = HistoricalQueryService(datasource)
    app.state.registry = registry
    app.state.broadcaster = broadcaster

    broadcaster.start()
    logger.info("✓ All database connections established successfully")

    try:
        yield
    finally:
        logger.info("🛑 Shutting down...")
        await broadcaster.stop()
        await registry.close_all()
        await pools.dispose()
        logger.info("✅ Shutdown complete")

# ============================================================================
# DEPENDENCIES
# ============================================================================
def get_pools(request: Request) -> DatabasePools:
    return request.app.state.pools

def get_datasource(request: Request) -> DataSource:
    return request.app.state.datasource

def get_history(request: Request) -> HistoricalQueryService:
    return request.app.state.history

# ============================================================================
# APP SETUP
# ============================================================================
def create_app(pools_factory: Callable[[], DatabasePools] = DatabasePools.from_settings) -> FastAPI:
    app = FastAPI(
        title="NOC Monitoring API",
        lifespan=lifespan,
        version=__version__,
    )
    app.state.pools_factory = pools_factory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.CORS_ORIGIN],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Cache-Control", "Accept"],
    )

    # ------------------------------------------------------------------------
    # ROOT & HEALTH
    # ------------------------------------------------------------------------
    @app.get("/")
    async def read_root():
        return {"message": "NOC Monitoring Backend is running", "ssl": settings.SSL_ENABLED}

    @app.get("/api/health", response_model=schemas.HealthResponse)
    async def health_check(datasource: DataSource = Depends(get_datasource)):
        connected = await datasource.ping()
        return {
            "status": "ok",
            "database": "connected" if connected else "disconnected",
            "ssl": settings.SSL_ENABLED,
        }

    # ------------------------------------------------------------------------
    # AUTHENTICATION
    # ------------------------------------------------------------------------
    @app.post("/api/login", response_model=schemas.Token)
    async def login(credentials: schemas.LoginRequest, pools: DatabasePools = Depends(get_pools)):
        try:
            user = await auth.authenticate_user(pools, credentials.username, credentials.password)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Login error: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

        if user is None:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"message": "Invalid username or password"},
            )

        token = auth.create_access_token(data={"id": user["id"], "username": user["username"]})
        logger.info(f"✅ Login successful: {user['username']}")
        return {"token": token}

    # ------------------------------------------------------------------------
    # EXPORT & ACCESS LOGS (bearer token required)
    # ------------------------------------------------------------------------
    @app.get("/api/export/{export_type}")
    async def export_data(
        export_type: str,
        time_range: str = Query(DEFAULT_RANGE, alias="timeRange"),
        history: HistoricalQueryService = Depends(get_history),
        user: Dict[str, Any] = Depends(auth.require_token),
    ):
        try:
            export = await history.export(export_type, time_range)
        except (InvalidExportType, FetchError, SQLAlchemyError) as e:
            logger.error(f"Export error: {e}")
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to export data", "details": str(e)},
            )

        return Response(
            content=export.content,
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={export.filename}"},
        )

    @app.get("/api/access-logs", response_model=List[schemas.AccessLogEntry])
    async def get_access_logs(
        datasource: DataSource = Depends(get_datasource),
        user: Dict[str, Any] = Depends(auth.require_token),
    ):
        try:
            return await datasource.access_logs()
        except (FetchError, SQLAlchemyError) as e:
            logger.error(f"Error fetching access logs: {e}")
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to fetch access logs", "details": str(e)},
            )

    # ------------------------------------------------------------------------
    # WEBSOCKET
    # ------------------------------------------------------------------------
    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await run_session(websocket, websocket.app.state.registry, websocket.app.state.history)

    return app

app = create_app()

# ============================================================================
# LOCAL RUN
# ============================================================================
def run():
    import uvicorn
    uvicorn.run(
        "nocmon.main:app",
        host=settings.HOST,
        port=settings.PORT,
        ws_ping_interval=settings.WS_PING_INTERVAL,
        ws_ping_timeout=settings.WS_PING_TIMEOUT,
        ssl_keyfile=settings.SSL_KEYFILE or None,
        ssl_certfile=settings.SSL_CERTFILE or None,
    )

if __name__ == "__main__":
    run()
