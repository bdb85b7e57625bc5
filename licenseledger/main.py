import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from licenseledger.config import settings
from licenseledger.core.database import close_db, init_db
from licenseledger.core.dependencies import get_services
from licenseledger.core.errors import LedgerError
from licenseledger.core.errors.middleware import ledger_error_handler
from licenseledger.core.errors.registry import error_registry
from licenseledger.core.log_middleware import CorrelationMiddleware
from licenseledger.core.structured_logging import setup_logging
from licenseledger.routers import admin, events, health, listings, subscriptions, upkeep
from licenseledger.services.expiry_keeper import ExpiryKeeper

setup_logging()

logger = logging.getLogger(__name__)

API_TITLE = "License Ledger API"

API_DESCRIPTION = """
## License Ledger

Registry of USD-priced service listings and time-boxed subscriptions paid in
the native asset at the current oracle rate.

### Callers

Mutating endpoints identify the caller through the `X-Principal` header.
Penalty and withdrawal endpoints require the administrator principal.

### Keepers

Poll `GET /upkeep/check`; when `upkeep_needed` is true submit its
`perform_data` to `POST /upkeep/perform`.
"""

TAGS_METADATA = [
    {"name": "health", "description": "Liveness and database round-trip."},
    {"name": "listings", "description": "Provider listings: register, update, inspect. **Requires X-Principal for writes.**"},
    {"name": "subscriptions", "description": "Consumer subscriptions and price quotes. **Requires X-Principal to subscribe.**"},
    {"name": "upkeep", "description": "Expiry sweep (read) and resolve (write) for keepers."},
    {"name": "admin", "description": "Administrator-only penalty and treasury operations."},
    {"name": "events", "description": "Lifecycle notifications for observers."},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("Starting %s v%s...", API_TITLE, settings.app_version)

    error_registry.load()
    init_db()
    services = get_services()

    keeper_task = None
    if settings.keeper_enabled:
        keeper = ExpiryKeeper(services.ledger)
        keeper_task = asyncio.create_task(keeper.run_forever())
    else:
        logger.info("Expiry keeper disabled, relying on external /upkeep callers")

    yield

    if keeper_task is not None:
        keeper_task.cancel()
        try:
            await keeper_task
        except asyncio.CancelledError:
            pass
    close_db()
    logger.info("Shutdown complete")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=settings.app_version,
    openapi_tags=TAGS_METADATA,
    lifespan=lifespan,
)

app.add_middleware(CorrelationMiddleware)
app.add_exception_handler(LedgerError, ledger_error_handler)

app.include_router(health.router)
app.include_router(listings.router)
app.include_router(subscriptions.router)
app.include_router(upkeep.router)
app.include_router(admin.router)
app.include_router(events.router)


def run() -> None:
    import uvicorn

    uvicorn.run("licenseledger.main:app", host="0.0.0.0", port=8000)
