"""
Background Jobs Module

Scheduled marketplace syncs:
- Coupang seller-shipped orders (every SELLER_SYNC_INTERVAL_MINUTES)
- Coupang Rocket Growth orders and revenue (daily)
- Naver SmartStore product orders (daily)
"""

from sellerops.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler, get_job_status

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "get_job_status",
]
