"""
Marketplace sync jobs.

Each job opens its own session and HTTP client, runs one cron entry point of
MarketplaceSyncService and logs the outcome. Failures are logged; the
scheduler keeps running.
"""
import logging
from typing import Any, Awaitable, Callable, Dict

from sellerops.database import get_db_session
from sellerops.services.marketplace_service import MarketplaceError, create_http_client
from sellerops.services.sync_service import MarketplaceSyncService

logger = logging.getLogger(__name__)

SyncRunner = Callable[[MarketplaceSyncService], Awaitable[Dict[str, Any]]]


async def run_sync_job(job_name: str, runner: SyncRunner) -> Dict[str, Any]:
    async with create_http_client() as http_client:
        try:
            async with get_db_session() as db:
                result = await runner(MarketplaceSyncService(db, http_client=http_client))
        except MarketplaceError as e:
            logger.error(f"Job '{job_name}' aborted ({e.marketplace}): {e.message}")
            return {"success": False, "error": e.message}

    logger.info(
        f"Job '{job_name}' completed: synced={result.get('synced', 0)} "
        f"skipped_cells={len(result.get('skipped_cells', []))} errors={len(result.get('errors', []))}"
    )
    if result.get("next_cell"):
        logger.warning(f"Job '{job_name}' ran out of time; next cell {result['next_cell']}")
    return result


async def sync_coupang_seller_orders() -> Dict[str, Any]:
    return await run_sync_job("sync_coupang_seller_orders", lambda service: service.sync_seller_cron())


async def sync_coupang_rocket_orders() -> Dict[str, Any]:
    return await run_sync_job("sync_coupang_rocket_orders", lambda service: service.sync_rocket_cron())


async def sync_coupang_revenue() -> Dict[str, Any]:
    return await run_sync_job("sync_coupang_revenue", lambda service: service.sync_revenue_cron())


async def sync_naver_orders() -> Dict[str, Any]:
    return await run_sync_job("sync_naver_orders", lambda service: service.sync_naver_cron())
