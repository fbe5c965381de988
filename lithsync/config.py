from __future__ import annotations

import os
from pathlib import Path
from typing import Final

from dotenv import load_dotenv


load_dotenv()

ROOT_DIR: Final[Path] = Path(__file__).resolve().parents[1]
DATA_DIR: Final[Path] = Path(os.getenv("DATA_DIR", str(ROOT_DIR / "data")))
DATA_DIR.mkdir(parents=True, exist_ok=True)
STORE_PATH: Final[Path] = DATA_DIR / "storage.db"

# Remote API
API_URL: Final[str] = os.getenv("API_URL", "http://localhost:7016")
API_TIMEOUT_SECONDS: Final[int] = int(os.getenv("API_TIMEOUT_SECONDS", "60"))
APP_VERSION: Final[str] = os.getenv("APP_VERSION", "1.0.0")
PLATFORM: Final[str] = os.getenv("PLATFORM", "android")
API_TOKEN: Final[str] = os.getenv("API_TOKEN", "")
# Signed-in user whose stats are primed at startup (optional)
USER_ID: Final[str] = os.getenv("USER_ID", "")

# Learning day starts at 02:00 UTC
RESET_HOUR_UTC: Final[int] = 2

# Unlocks the quiz without clicking every word (development builds)
SKIP_WORD_GATING: Final[bool] = os.getenv("SKIP_WORD_GATING", "false").lower() == "true"
SENTENCES_PER_DAY: Final[int] = int(os.getenv("SENTENCES_PER_DAY", "2"))

# Housekeeping of day-scoped keys
STALE_KEY_RETENTION_DAYS: Final[int] = int(os.getenv("STALE_KEY_RETENTION_DAYS", "7"))
SWEEP_INTERVAL_SECONDS: Final[int] = int(os.getenv("SWEEP_INTERVAL_SECONDS", "3600"))

STATS_SINGLE_FLIGHT: Final[bool] = os.getenv("STATS_SINGLE_FLIGHT", "false").lower() == "true"
LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO").upper()
