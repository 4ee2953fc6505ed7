"""
Background task that expires open requests whose randomness never arrived.
Runs inside the FastAPI lifespan as an asyncio task.
"""

import asyncio
import logging
from typing import Optional

from lootvault.core.config import settings
from lootvault.services.fulfillment import FulfillmentEngine

logger = logging.getLogger(__name__)


async def request_reaper_loop(engine: FulfillmentEngine, interval_sec: Optional[int] = None) -> None:
    """Run engine.expire_stale_requests() forever, pausing interval_sec between runs."""
    interval_sec = interval_sec or settings.REAPER_INTERVAL_SEC
    logger.info(
        "Request reaper started (interval=%ds, timeout=%ds)",
        interval_sec,
        settings.PENDING_REQUEST_TIMEOUT_SEC,
    )
    while True:
        try:
            expired = await engine.expire_stale_requests()
            if expired:
                logger.info("Request reaper tick: %d request(s) expired", expired)
        except asyncio.CancelledError:
            logger.info("Request reaper cancelled")
            return
        except Exception:
            logger.exception("Request reaper error")

        await asyncio.sleep(interval_sec)
