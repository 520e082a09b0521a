import logging
from typing import Any

from arq import cron

from quoteflow.core.config import settings
from quoteflow.core.database import SessionLocal
from quoteflow.repositories.idempotency_repository import IdempotencyRepository
from quoteflow.services.webhook_service import WebhookService
from quoteflow.tasks import redis_settings

logger = logging.getLogger(__name__)


async def deliver_pending_webhooks_task(ctx: dict[str, Any]) -> int:
    """Background task: deliver webhooks queued by domain events.

    Runs every minute.
    """
    db = SessionLocal()
    try:
        service = WebhookService(db)
        count = service.deliver_pending()
        if count > 0:
            logger.info("Delivered %d pending webhooks", count)
        return count
    finally:
        db.close()


async def retry_failed_webhooks_task(ctx: dict[str, Any]) -> int:
    """Background task: retry failed webhooks with exponential backoff.

    Runs every 5 minutes to find failed webhooks eligible for retry
    and re-delivers them.
    """
    db = SessionLocal()
    try:
        service = WebhookService(db)
        count = service.retry_failed_webhooks()
        if count > 0:
            logger.info("Retried %d failed webhooks", count)
        return count
    finally:
        db.close()


async def purge_idempotency_records_task(ctx: dict[str, Any]) -> int:
    """Background task: delete idempotency records older than the configured TTL.

    Runs hourly.
    """
    db = SessionLocal()
    try:
        repo = IdempotencyRepository(db)
        count = repo.delete_expired(max_age_hours=settings.IDEMPOTENCY_TTL_HOURS)
        if count > 0:
            logger.info("Purged %d expired idempotency records", count)
        return count
    finally:
        db.close()


class WorkerSettings:
    functions = [
        deliver_pending_webhooks_task,
        retry_failed_webhooks_task,
        purge_idempotency_records_task,
    ]
    cron_jobs = [
        cron(deliver_pending_webhooks_task),  # every minute
        cron(
            retry_failed_webhooks_task,
            minute={0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55},
        ),
        cron(purge_idempotency_records_task, minute={0}),  # hourly
    ]
    redis_settings = redis_settings
