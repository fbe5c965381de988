#!/usr/bin/env python3
"""Print every persisted day-scoped value for a user.

Usage:
    python scripts/dump_session.py USER_ID
    python scripts/dump_session.py USER_ID --date 2024-05-01
"""
from __future__ import annotations

import argparse
import asyncio
import json

from lithsync.config import STORE_PATH
from lithsync.dates import current_date_key
from lithsync.keys import day_keys, parse_key
from lithsync.storage import KeyValueStore
from lithsync.validators import validate_date_key, validate_user_id


async def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("user_id", help="User whose session to dump")
    parser.add_argument("--date", default=None, help="Learning day (YYYY-MM-DD), defaults to today")
    args = parser.parse_args()

    ok, err = validate_user_id(args.user_id)
    if not ok:
        parser.error(err)
    date_key = (args.date or current_date_key()).strip()
    ok, err = validate_date_key(date_key)
    if not ok:
        parser.error(f"--date {date_key!r}: {err}")

    store = KeyValueStore(STORE_PATH)
    await store.init()
    rows = []
    for key in day_keys(args.user_id, date_key):
        result = await store.load(key)
        if result.status == "absent":
            continue
        scoped = parse_key(key)
        rows.append((scoped.concern.value if scoped else key, result.status, result.value))

    if not rows:
        print(f"No session data for {args.user_id} on {date_key}")
        return
    print(f"Session data for {args.user_id} on {date_key}:")
    for concern, status, value in rows:
        rendered = json.dumps(value, ensure_ascii=False) if status == "found" else "<corrupt>"
        print(f"  {concern}: {rendered}")


if __name__ == "__main__":
    asyncio.run(main())
