import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from adapters.entry.http.keeper_router import router as keeper_router
from config.settings import settings
from workers.keeper_supervisor import KeeperSupervisor


def _setup_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    _setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Starting %s (lifespan startup)...", settings.APP_NAME)

    supervisor = KeeperSupervisor()
    try:
        await supervisor.start()
    except Exception:
        logger.exception("Keeper startup failed (MongoDB ping / indexes).")
        await supervisor.stop()
        raise

    app.state.keeper_supervisor = supervisor

    try:
        yield
    finally:
        logger.info("Shutting down %s (lifespan shutdown)...", settings.APP_NAME)
        await supervisor.stop()


app = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=lifespan)

# Routers devem ser incluídos fora do lifespan
app.include_router(keeper_router)


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
