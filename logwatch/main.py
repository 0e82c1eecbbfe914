"""logwatch FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from logwatch import config
from logwatch.observability import initialize as initialize_observability, shutdown as shutdown_observability
from logwatch.routers.analysis import analysis_router
from logwatch.watcher import log_watcher

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("logwatch")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("logwatch starting up")
    initialize_observability(app)
    app.state.log_watcher = log_watcher

    if config.WATCH_ENABLED:
        await log_watcher.start()

    yield

    logger.info("logwatch shutting down")
    await log_watcher.stop()
    shutdown_observability(app)


app = FastAPI(
    title="logwatch API",
    description="Reconstructed Intune agent sync history from raw daemon logs",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(analysis_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "watcher": "running" if log_watcher.is_running else "stopped",
        "localAnalysis": "cached" if log_watcher.latest is not None else "empty",
    }


def run() -> None:
    import uvicorn

    uvicorn.run("logwatch.main:app", host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
