"""
FastAPI application entry point for the food sharing backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from foodshare.config import Settings, get_settings
from foodshare.db import DbClient
from foodshare.dependencies import (
    build_claim_policy,
    build_db_client,
    build_token_service,
)
from foodshare.errors import FoodShareError
from foodshare.lifecycle import LifecycleCoordinator
from foodshare.queries import FoodQueries
from foodshare.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    logger.info("Closing store %s", app.state.db.__class__.__name__)
    app.state.db.close()


async def _handle_food_share_error(request: Request, exc: FoodShareError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.as_dict())


def create_app(
    settings: Optional[Settings] = None, db: Optional[DbClient] = None
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(
        title="Food Sharing Backend (FastAPI)", version="0.1.0", lifespan=_lifespan
    )
    app.state.settings = settings
    app.state.db = db if db is not None else build_db_client(settings)
    app.state.tokens = build_token_service(settings)
    app.state.coordinator = LifecycleCoordinator(
        app.state.db, build_claim_policy(settings)
    )
    app.state.queries = FoodQueries(app.state.db)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
    )
    app.add_exception_handler(FoodShareError, _handle_food_share_error)
    app.include_router(router, prefix=settings.api_prefix)
    return app
