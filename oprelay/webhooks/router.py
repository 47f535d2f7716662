"""Dispatch of parsed webhook payloads to OpenProject and Discord."""

from __future__ import annotations

from typing import Any

from oprelay.config import Settings
from oprelay.core.notifier import DiscordNotifier
from oprelay.openproject.client import OpenProjectClient
from oprelay.utils.logging import get_logger
from oprelay.webhooks.handlers import (
    branch_created_comment,
    commit_comment,
    extract_work_package_id,
    pull_request_issue_comment,
    pull_request_merged_comment,
    pull_request_opened_comment,
    work_package_created_message,
    work_package_moved_message,
    work_package_status_id,
)

log = get_logger(__name__)

PR_OPENED_ACTIONS = frozenset({"opened", "reopened", "ready_for_review"})


class EventRouter:
    """Turns GitHub events into work-package comments and OpenProject events
    into Discord notifications.

    Payloads without a work-package reference are skipped silently.
    """

    def __init__(
        self,
        settings: Settings,
        client: OpenProjectClient,
        notifier: DiscordNotifier,
    ) -> None:
        self._settings = settings
        self._client = client
        self._notifier = notifier

    # ------------------------------------------------------------------
    # OpenProject
    # ------------------------------------------------------------------

    async def handle_openproject(self, payload: dict[str, Any]) -> None:
        action = payload.get("action")
        work_package = payload.get("work_package") or {}
        base_url = self._settings.openproject.base_url

        if action == "work_package:updated":
            status_id = work_package_status_id(work_package)
            threshold = self._settings.openproject.terminal_status_threshold
            log.debug("op_status_change", work_package=work_package.get("id"), status_id=status_id)
            if status_id is not None and status_id > threshold:
                log.info("op_notify_moved", work_package=work_package.get("id"), status_id=status_id)
                await self._notifier.send(work_package_moved_message(work_package, base_url))

        elif action == "work_package:created":
            log.info("op_notify_created", work_package=work_package.get("id"))
            await self._notifier.send(work_package_created_message(work_package, base_url))

        else:
            log.debug("op_event_ignored", action=action)

    # ------------------------------------------------------------------
    # GitHub
    # ------------------------------------------------------------------

    async def handle_github(self, event_type: str, payload: dict[str, Any]) -> None:
        action = payload.get("action", "")

        if event_type == "create" and payload.get("ref_type") == "branch":
            await self._on_branch_created(payload)
        elif event_type == "push":
            await self._on_push(payload)
        elif event_type == "pull_request":
            pr = payload.get("pull_request") or {}
            if action == "closed" and pr.get("merged") is True:
                await self._on_pull_request_merged(payload)
            elif action in PR_OPENED_ACTIONS:
                await self._on_pull_request_opened(payload)
        elif event_type == "issue_comment":
            if action == "created" and (payload.get("issue") or {}).get("pull_request"):
                await self._on_pull_request_comment(payload)
        else:
            log.debug("github_event_ignored", event_type=event_type, action=action)

    async def _on_branch_created(self, payload: dict[str, Any]) -> None:
        wp_id = extract_work_package_id(payload.get("ref"))
        if wp_id is None:
            return
        log.info("github_branch_created", work_package=wp_id, branch=payload.get("ref"))
        await self._client.post_comment(wp_id, branch_created_comment(payload))

    async def _on_push(self, payload: dict[str, Any]) -> None:
        branch = str(payload.get("ref") or "").removeprefix("refs/heads/")
        wp_id = extract_work_package_id(branch)
        if wp_id is None:
            return
        repo = (payload.get("repository") or {}).get("full_name") or "unknown repo"
        commits = payload.get("commits") or []
        # Sequential so comments appear in commit order
        for commit in commits:
            log.info("github_commit", work_package=wp_id, sha=str(commit.get("id") or "")[:7])
            await self._client.post_comment(wp_id, commit_comment(repo, branch, commit))

    @staticmethod
    def _pull_request_wp_id(payload: dict[str, Any]) -> str | None:
        pr = payload.get("pull_request") or {}
        return (
            extract_work_package_id((pr.get("head") or {}).get("ref"))
            or extract_work_package_id(pr.get("title"))
        )

    async def _on_pull_request_merged(self, payload: dict[str, Any]) -> None:
        wp_id = self._pull_request_wp_id(payload)
        if wp_id is None:
            return
        log.info("github_pr_merged", work_package=wp_id, number=payload.get("number"))
        await self._client.post_comment(wp_id, pull_request_merged_comment(payload))
        await self._client.set_status_developed(wp_id)

    async def _on_pull_request_opened(self, payload: dict[str, Any]) -> None:
        wp_id = self._pull_request_wp_id(payload)
        if wp_id is None:
            return
        log.info("github_pr_opened", work_package=wp_id, number=payload.get("number"))
        await self._client.post_comment(wp_id, pull_request_opened_comment(payload))

    async def _on_pull_request_comment(self, payload: dict[str, Any]) -> None:
        wp_id = extract_work_package_id((payload.get("issue") or {}).get("title"))
        if wp_id is None:
            return
        log.info("github_pr_comment", work_package=wp_id)
        await self._client.post_comment(wp_id, pull_request_issue_comment(payload))
