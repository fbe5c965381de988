from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from lithsync.dates import current_date_key, date_key_age_days, utc_now
from lithsync.errors import PersistenceError
from lithsync.keys import parse_key
from lithsync.ops_logging import log_structured
from lithsync.storage import KeyValueStore

logger = logging.getLogger(__name__)


async def sweep_stale_keys(store: KeyValueStore, today_key: str, retention_days: int) -> int:
    """Delete day-scoped keys older than ``retention_days``; return how many went."""
    stale: list[str] = []
    for key in await store.keys():
        scoped = parse_key(key)
        # Not one of ours (user, settings, ...)
        if scoped is None:
            continue
        if date_key_age_days(scoped.date_key, today_key) > retention_days:
            stale.append(key)
    if not stale:
        return 0
    deleted = await store.delete_many(stale)
    log_structured("keys_swept", today=today_key, retention_days=retention_days, deleted=deleted)
    return deleted


async def sweep_tick(
    store: KeyValueStore,
    retention_days: int,
    clock: Optional[Callable[[], datetime]] = None,
) -> int:
    """One pass; storage failures are logged so the loop keeps going."""
    today_key = current_date_key((clock or utc_now)())
    try:
        return await sweep_stale_keys(store, today_key, retention_days)
    except PersistenceError as e:
        logger.error("Sweep failed for %s: %s", today_key, e)
        return 0


async def run_sweeper(
    store: KeyValueStore,
    *,
    interval_seconds: float,
    retention_days: int,
    clock: Optional[Callable[[], datetime]] = None,
) -> None:
    while True:
        await sweep_tick(store, retention_days, clock)
        await asyncio.sleep(interval_seconds)
