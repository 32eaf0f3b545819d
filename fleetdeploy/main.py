# fleetdeploy/main.py
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fleetdeploy.dependencies import get_pool
from fleetdeploy.routers import nodes

LOG_LEVEL = os.getenv("FLEETDEPLOY_LOG_LEVEL", "INFO")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Tear down every live SSH session on shutdown
    pool = app.dependency_overrides.get(get_pool, get_pool)()
    pool.close_all()


def create_app() -> FastAPI:
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Fleet Deploy API",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Register routes
    app.include_router(nodes.router)

    @app.get("/")
    def root():
        return {
            "status": "ok",
            "message": "Fleet deploy control plane online",
        }

    return app


app = create_app()
