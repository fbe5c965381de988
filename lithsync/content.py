from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from lithsync.api_client import ApiClient
from lithsync.errors import ApiError, SyncError, ValidationError
from lithsync.models import Announcement, Report, Sentence
from lithsync.validators import validate_report

logger = logging.getLogger(__name__)


def select_daily_sentences(
    sentences: Sequence[Sentence],
    limit: int,
    shuffle: bool = True,
) -> list[Sentence]:
    """Pick today's sentences.

    - Skip sentences without text.
    - Never pick the same sentence id twice.
    - Keep server order unless ``shuffle`` is set.
    """
    if limit <= 0:
        return []

    order = random.sample(range(len(sentences)), k=len(sentences)) if shuffle else range(len(sentences))
    seen: set[str] = set()
    picked: list[Sentence] = []
    for i in order:
        s = sentences[i]
        if not s.text.strip() or s.id in seen:
            continue
        seen.add(s.id)
        picked.append(s)
        if len(picked) >= limit:
            break
    return picked


def _version_tuple(version: str) -> tuple[int, ...]:
    parts = []
    for chunk in version.strip().split("."):
        digits = "".join(ch for ch in chunk if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    while len(parts) < 3:
        parts.append(0)
    return tuple(parts)


def compare_versions(a: str, b: str) -> int:
    ta, tb = _version_tuple(a), _version_tuple(b)
    return (ta > tb) - (ta < tb)


@dataclass(frozen=True)
class VersionCheck:
    update_required: bool
    update_available: bool
    maintenance: bool
    message: Optional[str] = None
    update_url: Optional[str] = None


class ContentService:
    """Reads that may fail quietly, and writes that must not."""

    def __init__(self, api: ApiClient) -> None:
        self.api = api

    async def daily_sentences(self) -> list[Sentence]:
        try:
            return await self.api.get_daily_sentences()
        except SyncError as e:
            logger.error("Error fetching sentences: %s", e)
            return []

    async def daily_questions(self) -> list[dict[str, Any]]:
        try:
            return await self.api.get_daily_challenge_questions()
        except SyncError as e:
            raise SyncError(f"Failed to load quiz questions: {e.message}") from e

    async def announcements(self) -> list[Announcement]:
        try:
            return await self.api.get_announcements()
        except SyncError as e:
            logger.error("Error fetching announcements: %s", e)
            return []

    async def submit_report(self, report: Report) -> None:
        ok, err = validate_report(report)
        if not ok:
            raise ValidationError(err or "Invalid report")
        try:
            await self.api.create_report(report)
        except ApiError as e:
            raise SyncError(f"Failed to submit report: {e.message}") from e

    async def delete_account(self, user_id: str) -> None:
        if not user_id:
            raise ValidationError("A signed-in user is required.")
        try:
            await self.api.delete_user_profile(user_id)
        except ApiError as e:
            raise SyncError(f"Failed to delete account: {e.message}") from e

    async def check_app_version(self, current_version: str, platform: str | None = None) -> VersionCheck:
        info = await self.api.get_app_info(platform)
        below_minimum = compare_versions(current_version, info.minimum_version) < 0
        return VersionCheck(
            update_required=below_minimum or (info.force_update and compare_versions(current_version, info.current_version) < 0),
            update_available=compare_versions(current_version, info.current_version) < 0,
            maintenance=info.is_maintenance,
            message=info.maintenance_message if info.is_maintenance else info.release_notes,
            update_url=info.update_url,
        )
