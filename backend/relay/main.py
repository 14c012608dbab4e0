import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from relay import ws
from relay.broadcast import BroadcastEngine, DeliveryPolicy
from relay.config import RelaySettings, load_settings
from relay.registry import Registry
from relay.routers import webhook
from relay.schemas import HealthOut, StatsOut

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting relay")
    yield
    closed = await app.state.engine.registry.close_all()
    logger.info("Relay stopped, closed %d connections", closed)


def create_app(settings: Optional[RelaySettings] = None) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = BroadcastEngine(Registry(), DeliveryPolicy.BEST_EFFORT)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )

    app.include_router(ws.router)
    app.include_router(webhook.router)

    @app.get("/health", response_model=HealthOut)
    def health():
        return HealthOut(ok=True, connections=len(app.state.engine.registry))

    @app.get("/stats", response_model=StatsOut)
    def stats():
        return StatsOut(**app.state.engine.stats())

    # mounted last so the routes above take precedence
    static_dir = Path(settings.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
    else:
        logger.warning("Static directory %s not found, not serving static files", static_dir)

    return app


settings = load_settings()
configure_logging(settings.log_level)
app = create_app(settings)

if __name__ == "__main__":
    import uvicorn
    logger.info("Server running on ws://%s:%s", settings.host, settings.port)
    uvicorn.run("relay.main:app", host=settings.host, port=settings.port)
