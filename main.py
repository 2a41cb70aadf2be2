import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from betpool.auth import ensure_admin
from betpool.config import ADMIN_PASSWORD, ADMIN_USERNAME, DATABASE_URL, LOG_JSON, LOG_LEVEL
from betpool.database import Database
from betpool.errors import add_exception_handlers
from betpool.logging_config import setup_logging
from betpool.services.cache import AggregateCache, ensure_data_version

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging(LOG_LEVEL, json_output=LOG_JSON)

    # Startup: open the database and make sure the admin account exists
    database = Database(DATABASE_URL).open()
    database.create_db_and_tables()
    with database.session() as db:
        ensure_admin(db, ADMIN_USERNAME, ADMIN_PASSWORD)
        ensure_data_version(db)
    app.state.database = database
    logger.info("betpool started")

    yield

    # Shutdown
    database.close()
    logger.info("betpool stopped")


app = FastAPI(
    title="betpool",
    description="Score prediction pools with per-competition and all-time leaderboards",
    version="1.0.0",
    lifespan=lifespan
)
app.state.stats_cache = AggregateCache()
add_exception_handlers(app)

# Include routers
from betpool.routers import admin, auth, competitions, matches, predictions, stats  # noqa: E402

app.include_router(auth.router)
app.include_router(matches.router)
app.include_router(predictions.router)
app.include_router(competitions.router)
app.include_router(stats.router)
app.include_router(admin.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
