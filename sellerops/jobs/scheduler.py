"""
APScheduler configuration.

Cron entry points of the sync service run in-process when SCHEDULER_ENABLED
is set; deployments that trigger the /sync-cron endpoints externally leave it
off.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from sellerops.config import settings

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Two runs of one sync never overlap
    'misfire_grace_time': 60,
}

scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone=settings.SCHEDULER_TIMEZONE
)


def start_scheduler():
    """Register the marketplace sync jobs and start the scheduler."""
    if not scheduler.running:
        from sellerops.jobs.marketplace_sync import (
            sync_coupang_seller_orders,
            sync_coupang_rocket_orders,
            sync_coupang_revenue,
            sync_naver_orders,
        )

        scheduler.add_job(
            sync_coupang_seller_orders,
            'interval',
            minutes=settings.SELLER_SYNC_INTERVAL_MINUTES,
            id='sync_coupang_seller_orders',
            name='Sync Coupang Seller Orders',
            replace_existing=True,
        )

        scheduler.add_job(
            sync_coupang_rocket_orders,
            'cron',
            hour=settings.ROCKET_SYNC_HOUR,
            minute=0,
            id='sync_coupang_rocket_orders',
            name='Sync Coupang Rocket Growth Orders',
            replace_existing=True,
        )

        scheduler.add_job(
            sync_coupang_revenue,
            'cron',
            hour=settings.REVENUE_SYNC_HOUR,
            minute=0,
            id='sync_coupang_revenue',
            name='Sync Coupang Revenue',
            replace_existing=True,
        )

        scheduler.add_job(
            sync_naver_orders,
            'cron',
            hour=settings.NAVER_SYNC_HOUR,
            minute=30,
            id='sync_naver_orders',
            name='Sync Naver Orders',
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        for job in scheduler.get_jobs():
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status():
    """Get status of all scheduled jobs."""
    jobs = scheduler.get_jobs()
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': str(job.next_run_time) if job.next_run_time else None,
            'trigger': str(job.trigger),
        }
        for job in jobs
    ]
