import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ordersync.core.config import settings
from ordersync.routers import webhook_logs, webhooks

logging.getLogger("ordersync").setLevel(settings.LOG_LEVEL.upper())

OPENAPI_TAGS = [
    {"name": "Webhooks", "description": "Receive order webhooks from connected storefronts."},
    {"name": "Webhook Logs", "description": "Inspect the recorded trail of inbound webhooks."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Order ingestion service. Receives Shopify and WooCommerce order webhooks, "
        "keeps customers, orders and line items in sync, and notifies store owners."
    ),
    openapi_tags=OPENAPI_TAGS,
    debug=settings.DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-Id"],
)

app.include_router(webhooks.router, prefix="/v1/webhooks", tags=["Webhooks"])
app.include_router(webhook_logs.router, prefix="/v1/webhook_logs", tags=["Webhook Logs"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
