from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from lithsync.api_client import ApiClient
from lithsync.config import (
    API_TOKEN,
    API_URL,
    LOG_LEVEL,
    SENTENCES_PER_DAY,
    SKIP_WORD_GATING,
    STALE_KEY_RETENTION_DAYS,
    STATS_SINGLE_FLIGHT,
    STORE_PATH,
    SWEEP_INTERVAL_SECONDS,
    USER_ID,
)
from lithsync.content import ContentService
from lithsync.models import UserProfile
from lithsync.state import AppState
from lithsync.storage import KeyValueStore
from lithsync.sweeper import run_sweeper, sweep_tick
from lithsync.sync import StatsSync
from lithsync.tracker import SessionProgressTracker

logger = logging.getLogger(__name__)


async def main() -> None:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    store = KeyValueStore(STORE_PATH)
    await store.init()
    state = AppState()

    async def token_provider() -> str | None:
        return API_TOKEN or None

    async def on_unauthorized() -> None:
        state.sign_out()

    async with ApiClient(API_URL, token_provider=token_provider, on_unauthorized=on_unauthorized) as api:
        sync = StatsSync(api, state, single_flight=STATS_SINGLE_FLIGHT)
        logger.info("Store at %s, API at %s", STORE_PATH, API_URL)

        removed = await sweep_tick(store, STALE_KEY_RETENTION_DAYS)
        logger.info("Initial sweep removed %s stale keys", removed)

        if USER_ID:
            state.sign_in(UserProfile(id=USER_ID, email=""))
            await sync.refresh_all(USER_ID)

            tracker = SessionProgressTracker(
                store,
                USER_ID,
                skip_word_gating=SKIP_WORD_GATING,
                on_quiz_completed=sync.complete_quiz,
            )
            await tracker.load()
            sentences = await tracker.ensure_sentences(ContentService(api).daily_sentences, SENTENCES_PER_DAY)
            logger.info(
                "Session for %s on %s: %s, %s sentences",
                USER_ID,
                tracker.date_key,
                tracker.phase.value,
                len(sentences),
            )

        await run_sweeper(
            store,
            interval_seconds=SWEEP_INTERVAL_SECONDS,
            retention_days=STALE_KEY_RETENTION_DAYS,
        )


if __name__ == "__main__":
    with suppress(KeyboardInterrupt):
        asyncio.run(main())
