"""
Maintenance tasks.
"""

import asyncio
import time

import structlog
from celery import shared_task

from cafirm.core.config import settings
from cafirm.core.storage import StorageService
from cafirm.db.session import async_session_maker
from cafirm.repositories.document_repository import all_storage_paths

logger = structlog.get_logger()


async def cleanup_orphaned_uploads(
    storage: StorageService | None = None,
    max_age_hours: int | None = None,
    now: float | None = None,
) -> dict:
    """
    Deletes stored files no document row points to.

    Only files older than ORPHAN_UPLOAD_MAX_AGE_HOURS are touched, so uploads
    still being committed are left alone.
    """
    storage = storage or StorageService()
    max_age_hours = settings.ORPHAN_UPLOAD_MAX_AGE_HOURS if max_age_hours is None else max_age_hours
    cutoff = (now or time.time()) - max_age_hours * 3600

    async with async_session_maker() as session:
        known = await all_storage_paths(session)

    removed = []
    for relative_path, modified_at in list(storage.iter_files()):
        if relative_path in known or modified_at > cutoff:
            continue
        if await storage.delete(relative_path):
            removed.append(relative_path)

    if removed:
        logger.info("Orphaned uploads removed", count=len(removed))
    return {"removed": removed}


@shared_task(bind=True)
def cleanup_orphaned_uploads_task(self):
    return asyncio.run(cleanup_orphaned_uploads())
