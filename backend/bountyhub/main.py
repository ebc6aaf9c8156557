"""FastAPI application entry point."""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from bountyhub.config import get_settings
from bountyhub.context import AppContext
from bountyhub.database import Base
from bountyhub.errors import register_exception_handlers
from bountyhub.logging_config import setup_logging
from bountyhub.routers import bounties, health, repositories, users, webhooks

# Import all models so Base.metadata knows about them
from bountyhub.models.bounty import Bounty, BountyApplicant  # noqa: F401
from bountyhub.models.contribution import Contribution  # noqa: F401
from bountyhub.models.user import User  # noqa: F401
from bountyhub.models.webhook import Webhook, WebhookEvent  # noqa: F401

logger = logging.getLogger("bountyhub.main")


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """Build the application; without ``context`` one is wired from settings at startup."""
    settings = context.settings if context else get_settings()
    setup_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = context or AppContext.from_settings(get_settings())
        if ctx.settings.DATABASE_URL.startswith("sqlite"):
            # dev mode; real deployments run the alembic migrations
            Base.metadata.create_all(bind=ctx.engine)
        app.state.context = ctx
        logger.info("BountyHub backend started")
        yield
        if context is None:
            ctx.engine.dispose()

    app = FastAPI(
        title="BountyHub",
        description="GitHub bounty marketplace with escrow-backed automatic payouts",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "%s %s -> %d", request.method, request.url.path, response.status_code,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response

    register_exception_handlers(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(repositories.router, prefix="/api", tags=["Repositories"])
    app.include_router(webhooks.router, prefix="/api", tags=["Webhooks"])
    app.include_router(bounties.router, prefix="/api", tags=["Bounties"])
    app.include_router(users.router, prefix="/api/users", tags=["Users"])
    app.include_router(users.wallet_router, prefix="/api/wallet", tags=["Wallet"])
    return app


app = create_app()
