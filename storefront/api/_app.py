"""
FastAPI application factory.

    app = create_app(Settings.from_env())
    # uvicorn --factory storefront.api:create_app
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import fastapi
from fastapi import Request
from fastapi.responses import JSONResponse

from storefront.api._codec import FailureError
from storefront.api._routes import router
from storefront.config import Settings, configure_logging
from storefront.container import Storefront

type StartupHook = Callable[[Storefront], Awaitable[None]]


def create_app(
    settings: Settings | None = None,
    *,
    on_startup: StartupHook | None = None,
    **overrides: Any,
) -> fastapi.FastAPI:
    """
    Build the app; the Storefront is opened in lifespan and closed on shutdown.

    overrides are passed to Storefront.open (http, cards, rates, verifiers, clock).
    """
    settings = settings or Settings.from_env()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: fastapi.FastAPI) -> AsyncIterator[None]:
        store = await Storefront.open(settings, **overrides)
        app.state.storefront = store
        try:
            if on_startup is not None:
                await on_startup(store)
            yield
        finally:
            await store.close()

    app = fastapi.FastAPI(title="Storefront", lifespan=lifespan)

    @app.exception_handler(FailureError)
    async def _failure(request: Request, exc: FailureError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.body())

    app.include_router(router)
    return app


__all__ = ("create_app",)
