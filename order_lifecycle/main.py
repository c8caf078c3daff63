# order_lifecycle/main.py
from fastapi import FastAPI
import logging
from contextlib import asynccontextmanager

from order_lifecycle.config import settings
from order_lifecycle.database import db
from order_lifecycle.api.errors import register_exception_handlers
from order_lifecycle.api.routes import auth as auth_routes
from order_lifecycle.api.routes import orders as order_routes
from order_lifecycle.api.routes import order_status as order_status_routes
from order_lifecycle.middleware.http import add_security_headers, configure_cors
from order_lifecycle.services.notifications import notifier


logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: apply the configured log level and check the data directory.
    Shutdown: drain queued notifications.
    """
    logging.getLogger("order_lifecycle").setLevel(settings.LOG_LEVEL.upper())

    db.data_dir.mkdir(parents=True, exist_ok=True)
    orders_path = db._file_path("orders")
    if not orders_path.exists():
        logger.warning("Orders table not found at %s; it will be created on first order.", orders_path)
    else:
        logger.info("Using orders table: %s", orders_path)

    yield
    notifier.shutdown(wait=True)
    logger.info("Shutting down Order Lifecycle API")


app = FastAPI(title="Order Lifecycle API", version="0.1.0", lifespan=lifespan)
configure_cors(app)
add_security_headers(app)
register_exception_handlers(app)

app.include_router(auth_routes.router)
app.include_router(order_routes.router)
app.include_router(order_status_routes.router)


@app.get("/", tags=["root"])
async def root():
    return {"status": "ok", "service": "Order Lifecycle API"}
