# billing_relay/main.py
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .providers import close_providers, open_providers
from .routes.auth import router as auth_router
from .routes.checkout import router as checkout_router
from .routes.portal import router as portal_router
from .routes.products import router as products_router
from .routes.webhooks import router as webhooks_router

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("relay")


@asynccontextmanager
async def lifespan(app: FastAPI):
    open_providers(app, settings)
    logger.info("Billing relay started (%s)", settings.app_env)
    yield
    await close_providers(app)


app = FastAPI(
    title="Billing Relay",
    version="1.0.0",
    description="Relays Polar checkouts and subscription webhooks to Clerk user metadata.",
    lifespan=lifespan,
)

# CORS: only the frontend, with cookies (Clerk __session)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url.rstrip("/")] if settings.frontend_url else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


# Routers
app.include_router(webhooks_router, prefix="")
app.include_router(auth_router, prefix="")
app.include_router(portal_router, prefix="")
app.include_router(checkout_router, prefix="")
app.include_router(products_router, prefix="")


def run():
    uvicorn.run("billing_relay.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
