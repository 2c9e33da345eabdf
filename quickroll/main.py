"""quickroll-core — FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from importlib.metadata import version, PackageNotFoundError

from fastapi import FastAPI

from quickroll.api import items, web
from quickroll.infra.db import init_db

logger = logging.getLogger("quickroll")

try:
    __version__ = version("quickroll-core")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
    await init_db()
    logger.info("quickroll-core %s ready", __version__)
    yield


app = FastAPI(
    title="quickroll-core",
    description="Quick-roll engine — item actions, crits and resource consumption",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(items.router)
app.include_router(web.router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "engine": "quickroll-core", "version": __version__}
