import datetime
import json
import logging

logger = logging.getLogger("lithsync.ops")


def log_structured(event: str, **fields):
    payload = {
        "event": event,
        "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds"),
    }
    payload.update(fields)
    logger.info(json.dumps(payload, ensure_ascii=False, default=str))
