import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from lootvault.core.config import settings
from lootvault.core.database import async_session
from lootvault.api.deps import get_caller, http_error
from lootvault.api.routes.admin import router as admin_router
from lootvault.api.routes.boxes import router as boxes_router
from lootvault.api.routes.opens import router as opens_router
from lootvault.api.routes.randomness import router as randomness_router
from lootvault.services.access import require_owner
from lootvault.services.errors import LootBoxError
from lootvault.services.events import EventPublisher
from lootvault.services.fulfillment import get_fulfillment_engine
from lootvault.workers.request_reaper import request_reaper_loop

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: randomness source + background expiry of stale requests
    engine = get_fulfillment_engine()
    await engine.start()
    reaper = asyncio.create_task(request_reaper_loop(engine))
    yield
    # Shutdown
    reaper.cancel()
    await asyncio.gather(reaper, return_exceptions=True)
    await engine.stop()
    await EventPublisher.close()


app = FastAPI(title=settings.PROJECT_NAME, debug=settings.DEBUG, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(boxes_router, prefix="/api/v1")
app.include_router(opens_router, prefix="/api/v1")
app.include_router(randomness_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health():
    try:
        async with async_session() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {e}"

    redis_ok = await EventPublisher.health_check() if settings.EVENTS_PUBLISH_ENABLED else None

    return {
        "status": "ok" if db_status == "connected" else "degraded",
        "db": db_status,
        "redis": {None: "disabled", True: "connected", False: "unreachable"}[redis_ok],
        "randomness": get_fulfillment_engine().randomness.name,
    }


@app.get("/migrate")
async def run_migrations(caller: str = Depends(get_caller)):
    """Run Alembic migrations (initializes the database on first deploy). Owner only."""
    try:
        require_owner(caller)
    except LootBoxError as e:
        raise http_error(e)

    try:
        import os

        from alembic import command
        from alembic.config import Config

        backend_dir = os.getcwd()
        alembic_cfg_path = os.path.join(backend_dir, "alembic.ini")
        alembic_cfg = Config(alembic_cfg_path)

        # env.py drives its own event loop
        await asyncio.to_thread(command.upgrade, alembic_cfg, "head")

        return {"success": True, "message": "Migrations completed successfully", "cwd": backend_dir}
    except Exception as e:
        logger.exception("Migration failed")
        return {"success": False, "error": str(e)}
