from fastapi import FastAPI

from app.config import settings
from app.dependencies import close_clients
from app.logging_config import get_logger, setup_logging
from app.routers import auth, notifications, transfer, wallet, webhook

setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="Wallet Chat API",
    description="WhatsApp chat front-end for a custodial wallet",
    version="0.1.0",
)

app.include_router(webhook.router)
app.include_router(transfer.router)
app.include_router(notifications.router)
app.include_router(wallet.router)
app.include_router(auth.router)


@app.on_event("shutdown")
async def shutdown_clients() -> None:
    await close_clients()
    logger.info("HTTP and Redis clients closed")


@app.get("/health")
async def health():
    return {"status": "ok"}
