"""
Periodic maintenance tasks
Removes ActiveCall rows whose terminal status event never arrived
"""
import asyncio
from typing import Any, Dict, Optional

from celery import shared_task
from celery.utils.log import get_task_logger

from call_relay.core.config import settings
from call_relay.db import CallRelayRepository, create_adapter, now_ts

logger = get_task_logger(__name__)


def run_async(coro):
    """Helper to run async code in Celery tasks"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def cleanup_stale_active_calls(
    repository: CallRelayRepository,
    stale_seconds: int,
    tenant_id: Optional[str] = None,
) -> int:
    """Delete ActiveCall rows not updated within `stale_seconds`."""
    cutoff = now_ts() - stale_seconds
    deleted = await repository.delete_stale_active_calls(cutoff, tenant_id=tenant_id)
    if deleted:
        logger.info(f"Removed {deleted} stale active call(s) older than {stale_seconds}s")
    return deleted


@shared_task(
    bind=True,
    name="call_relay.tasks.maintenance_tasks.sweep_stale_active_calls",
    max_retries=2,
    default_retry_delay=30,
)
def sweep_stale_active_calls(self, stale_seconds: Optional[int] = None) -> Dict[str, Any]:
    """Beat-scheduled sweep across all tenants"""
    threshold = stale_seconds or settings.active_call_stale_seconds

    async def _sweep():
        repository = CallRelayRepository(create_adapter(settings))
        if not await repository.initialize():
            raise RuntimeError("Database unavailable")
        try:
            return await cleanup_stale_active_calls(repository, threshold)
        finally:
            await repository.close()

    try:
        deleted = run_async(_sweep())
        return {"status": "success", "deleted": deleted, "task_id": self.request.id}
    except Exception as e:
        logger.error(f"Stale active call sweep failed: {e}")
        if self.request.retries < self.max_retries:
            raise self.retry(exc=e)
        return {"status": "failed", "error": str(e), "task_id": self.request.id}
