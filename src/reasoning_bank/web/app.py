# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
FastAPI application for the reasoning bank HTTP interface.

All routers are mounted under /api. The shared repository is created in
the lifespan unless one was injected beforehand (tests, embedded use).
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import settings
from ..storage.base import PatternRepository
from . import dependencies
from .api import analytics, spiking

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the shared repository on startup unless one is already set."""
    from ..shared_storage import close_shared_repository, get_shared_repository

    owns_repository = dependencies._repository is None
    if owns_repository:
        dependencies.set_repository(await get_shared_repository())
    try:
        yield
    finally:
        if owns_repository:
            dependencies.set_repository(None)
            await close_shared_repository()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Reasoning Bank Analytics",
        description="Pattern graph analytics and spiking network for a reasoning bank",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.get("/api/health", tags=["health"])
    async def health(repository: PatternRepository = Depends(dependencies.get_repository)):
        stats = await repository.health_check()
        return {"status": stats.get("status", "unknown"), "version": __version__, "repository": stats}

    app.include_router(analytics.router, prefix="/api")
    app.include_router(spiking.router, prefix="/api")
    return app


app = create_app()


def main():
    """Main entry point for the HTTP server."""
    import uvicorn

    logging.basicConfig(level=settings.logging.level)
    host = os.getenv("RB_HTTP_HOST", "0.0.0.0")
    port = int(os.getenv("RB_HTTP_PORT", "8080"))
    logger.info(f"Starting Reasoning Bank HTTP server on {host}:{port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
