"""Daily work-package summary, roadmap progress and reminder jobs."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

from oprelay.config import Settings
from oprelay.core.directory import UserDirectory
from oprelay.core.notifier import DiscordNotifier
from oprelay.core.render import render_digest, render_html, render_reminders
from oprelay.openproject.client import Filters, OpenProjectClient
from oprelay.openproject.models import (
    RoadmapSummary,
    UserSummary,
    WorkPackageSummary,
    is_in_progress,
    is_open,
    normalize_roadmap,
    normalize_user,
    normalize_work_package,
)
from oprelay.utils.logging import get_logger

log = get_logger(__name__)

DUE_TODAY_FILTER: Filters = [{"due_date": {"operator": "t", "values": []}}]
OVERDUE_FILTER: Filters = [{"due_date": {"operator": "<t-", "values": ["0"]}}]
OPEN_FILTER: Filters = [{"status": {"operator": "o", "values": []}}]
CLOSED_FILTER: Filters = [{"status": {"operator": "c", "values": []}}]


@dataclass(frozen=True)
class TodaySummary:
    today: list[WorkPackageSummary] = field(default_factory=list)
    overdue: list[WorkPackageSummary] = field(default_factory=list)
    in_progress: list[WorkPackageSummary] = field(default_factory=list)
    roadmaps: list[RoadmapSummary] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "today": [wp.to_dict() for wp in self.today],
            "overdue": [wp.to_dict() for wp in self.overdue],
            "in_progress": [wp.to_dict() for wp in self.in_progress],
            "roadmaps": [r.to_dict() for r in self.roadmaps],
        }


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def partition_work_packages(
    due_today: list[dict[str, Any]],
    overdue: list[dict[str, Any]],
    open_items: list[dict[str, Any]],
    terminal_threshold: int = 8,
) -> tuple[list[dict[str, Any]], list[dict[str, Any]], list[dict[str, Any]]]:
    """Make the three raw result sets disjoint.

    Precedence is due today, then overdue, then in progress: an item that
    shows up in more than one query is kept only in the first set.
    """
    today_open = [wp for wp in due_today if is_open(wp, terminal_threshold)]
    taken = {wp.get("id") for wp in today_open}

    overdue_open = [
        wp for wp in overdue
        if is_open(wp, terminal_threshold) and wp.get("id") not in taken
    ]
    taken.update(wp.get("id") for wp in overdue_open)

    in_progress = [
        wp for wp in open_items
        if is_open(wp, terminal_threshold)
        and is_in_progress(wp)
        and wp.get("id") not in taken
    ]
    return today_open, overdue_open, in_progress


class SummaryAggregator:
    def __init__(
        self,
        settings: Settings,
        client: OpenProjectClient,
        notifier: DiscordNotifier,
        directory: UserDirectory,
    ) -> None:
        self._settings = settings
        self._client = client
        self._notifier = notifier
        self._directory = directory

    @property
    def base_url(self) -> str:
        return self._settings.openproject.root_url

    async def _type_filter(self) -> Filters:
        type_id = await self._client.resolver.type_id()
        if not type_id:
            return []
        return [{"type": {"operator": "=", "values": [type_id]}}]

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    async def get_today_summary(self) -> TodaySummary:
        type_filter = await self._type_filter()
        due_today, overdue, open_items = await asyncio.gather(
            self._client.fetch_work_packages(DUE_TODAY_FILTER + type_filter),
            self._client.fetch_work_packages(OVERDUE_FILTER + type_filter),
            self._client.fetch_work_packages(OPEN_FILTER + type_filter),
        )
        today_open, overdue_open, in_progress = partition_work_packages(
            due_today,
            overdue,
            open_items,
            self._settings.openproject.terminal_status_threshold,
        )
        roadmaps = await self.get_roadmaps()
        log.info(
            "summary_built",
            today=len(today_open),
            overdue=len(overdue_open),
            in_progress=len(in_progress),
            roadmaps=len(roadmaps),
        )
        return TodaySummary(
            today=[normalize_work_package(wp) for wp in today_open],
            overdue=[normalize_work_package(wp) for wp in overdue_open],
            in_progress=[normalize_work_package(wp) for wp in in_progress],
            roadmaps=roadmaps,
        )

    async def _enrich_roadmap(self, version: dict[str, Any]) -> RoadmapSummary:
        by_version: Filters = [
            {"version": {"operator": "=", "values": [str(version.get("id"))]}}
        ]
        total, closed = await asyncio.gather(
            self._client.fetch_count(by_version),
            self._client.fetch_count(by_version + CLOSED_FILTER),
        )
        return normalize_roadmap(version, total=total, closed=closed)

    async def get_roadmaps(self) -> list[RoadmapSummary]:
        versions = await self._client.fetch_roadmaps()
        return list(await asyncio.gather(*(self._enrich_roadmap(v) for v in versions)))

    async def get_users(self) -> list[UserSummary]:
        principals = await self._client.fetch_users()
        detailed = await asyncio.gather(
            *(self._client.fetch_user_detail(p) for p in principals)
        )
        return self._directory.merge(normalize_user(u) for u in detailed)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    async def summary_html(self) -> str:
        summary = await self.get_today_summary()
        return render_html(summary, today_utc(), self.base_url)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def send_daily_summary(self) -> None:
        summary = await self.get_today_summary()
        message = render_digest(summary, today_utc())
        await self._notifier.send(message, self._settings.discord.summary_target or None)
        log.info("daily_summary_sent")

    async def send_due_reminders(self) -> dict[str, int]:
        summary = await self.get_today_summary()
        target = self._settings.discord.reminder_target or None
        for message in render_reminders(summary, self.base_url, self._directory):
            await self._notifier.send(message, target)
        counts = {"today": len(summary.today), "overdue": len(summary.overdue)}
        log.info("due_reminders_sent", **counts)
        return counts
