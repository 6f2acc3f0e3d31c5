from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import uvicorn

from civbridge.config import BridgeSettings
from civbridge.routers.game_router import router as game_router
from civbridge.services.session import SessionStore

logger = logging.getLogger(__name__)


def create_app(settings: Optional[BridgeSettings] = None, store: Optional[SessionStore] = None) -> FastAPI:
    """Build the bridge app. The SessionStore lives on `app.state.store`."""
    settings = settings or BridgeSettings.from_env()
    store = store or SessionStore(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await store.close()

    app = FastAPI(title="Cairo Civ bridge", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(_req: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    # Health check
    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    app.include_router(game_router, prefix="/api", tags=["game"])
    return app


def main() -> None:
    settings = BridgeSettings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Cairo Civ bridge on http://%s:%d, expecting Katana at %s", settings.host, settings.port, settings.node_url)
    logger.info("Start Katana with: katana --dev --dev.no-fee --dev.no-account-validation")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
