"""HTTP surface: GitHub/OpenProject webhooks and summary endpoints (aiohttp)."""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from typing import Awaitable, Callable

from aiohttp import web

from oprelay.config import Settings
from oprelay.core.summary import SummaryAggregator
from oprelay.utils.logging import get_logger
from oprelay.webhooks.handlers import validate_github_signature
from oprelay.webhooks.models import WebhookEvent
from oprelay.webhooks.router import EventRouter

log = get_logger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@web.middleware
async def _log_requests(request: web.Request, handler: Handler) -> web.StreamResponse:
    log.info("http_request", method=request.method, path=request.path)
    return await handler(request)


class RelayServer:
    """Receives webhooks and serves the summary/trigger endpoints."""

    def __init__(
        self,
        settings: Settings,
        router: EventRouter,
        aggregator: SummaryAggregator,
    ) -> None:
        self._settings = settings
        self._router = router
        self._aggregator = aggregator
        self._runner: web.AppRunner | None = None
        self._background: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        github = self._settings.github
        if github.enforce_signature and not github.webhook_secret:
            log.warning(
                "github_secret_missing",
                msg="GITHUB_WEBHOOK_SECRET is empty; every GitHub delivery will be rejected.",
            )
        app = self.build_app()
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._settings.server.bind, self._settings.server.port)
        await site.start()
        log.info(
            "relay_server_started",
            bind=self._settings.server.bind,
            port=self._settings.server.port,
        )

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        log.info("relay_server_stopped")

    # ------------------------------------------------------------------
    # App construction
    # ------------------------------------------------------------------

    def build_app(self) -> web.Application:
        app = web.Application(middlewares=[_log_requests])
        app.router.add_get("/health", self._health)
        app.router.add_get("/getTodaySummary", self._today_summary)
        app.router.add_get("/getTodaySummaryView", self._today_summary_view)
        app.router.add_get("/getRoadmaps", self._roadmaps)
        app.router.add_get("/users", self._users)
        app.router.add_get("/triggerNow", self._trigger_summary)
        app.router.add_get("/triggerDueUsers", self._trigger_due_users)
        app.router.add_post("/op-update", self._openproject_webhook)
        app.router.add_route("*", "/{tail:.*}", self._fallback)
        return app

    # ------------------------------------------------------------------
    # Query endpoints
    # ------------------------------------------------------------------

    async def _health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def _today_summary(self, request: web.Request) -> web.Response:
        summary = await self._aggregator.get_today_summary()
        return web.json_response(summary.to_dict())

    async def _today_summary_view(self, request: web.Request) -> web.Response:
        html = await self._aggregator.summary_html()
        return web.Response(text=html, content_type="text/html", charset="utf-8")

    async def _roadmaps(self, request: web.Request) -> web.Response:
        roadmaps = await self._aggregator.get_roadmaps()
        return web.json_response([r.to_dict() for r in roadmaps])

    async def _users(self, request: web.Request) -> web.Response:
        users = await self._aggregator.get_users()
        return web.json_response([u.to_dict() for u in users])

    async def _trigger_summary(self, request: web.Request) -> web.Response:
        try:
            await self._aggregator.send_daily_summary()
        except Exception:
            log.exception("on_demand_summary_failed")
            return web.Response(status=500, text="Error")
        return web.json_response({"status": "sent"})

    async def _trigger_due_users(self, request: web.Request) -> web.Response:
        try:
            counts = await self._aggregator.send_due_reminders()
        except Exception:
            log.exception("on_demand_reminders_failed")
            return web.Response(status=500, text="Error")
        return web.json_response({"status": "sent", **counts})

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def _openproject_webhook(self, request: web.Request) -> web.Response:
        body = await request.read()
        try:
            payload = json.loads(body)
        except ValueError:
            log.error("openproject_bad_json")
            return web.Response(status=400, text="Bad JSON")
        if not isinstance(payload, dict):
            log.info("openproject_payload_ignored", kind=type(payload).__name__)
            return web.Response(status=200, text="OK")

        event = WebhookEvent(source="openproject", event_type="work_package",
                             action=str(payload.get("action", "")), body=body)
        log.info("openproject_delivery", action=event.action)
        await self._run_bounded(self._router.handle_openproject(payload), event)
        return web.Response(status=200, text="OK")

    async def _fallback(self, request: web.Request) -> web.Response:
        if request.method != "POST":
            return web.Response(status=404, text="Not Found")
        return await self._github_webhook(request)

    async def _github_webhook(self, request: web.Request) -> web.Response:
        # The exact bytes GitHub signed; never re-serialize before verifying.
        body = await request.read()
        event = WebhookEvent(
            source="github",
            event_type=request.headers.get("X-GitHub-Event", ""),
            body=body,
            signature=request.headers.get("X-Hub-Signature-256"),
            delivery_id=request.headers.get("X-GitHub-Delivery"),
        )
        log.info(
            "github_delivery",
            event_type=event.event_type,
            delivery=event.delivery_id,
            ip=request.headers.get("X-Forwarded-For", request.remote or "unknown"),
        )

        github = self._settings.github
        if github.enforce_signature:
            if not validate_github_signature(event.body, event.signature, github.webhook_secret):
                log.warning("github_signature_invalid", delivery=event.delivery_id)
                return web.Response(status=401, text="Invalid signature")
        else:
            log.warning("signature_verification_disabled",
                        msg="ENFORCE_GITHUB_SIGNATURE=false, accepting unsigned delivery")

        try:
            payload = json.loads(event.body)
        except ValueError:
            log.error("github_bad_json", delivery=event.delivery_id)
            return web.Response(status=400, text="Bad JSON")
        if not isinstance(payload, dict):
            log.info("github_payload_ignored", delivery=event.delivery_id,
                     kind=type(payload).__name__)
            return web.Response(status=200, text="OK")

        event = replace(event, action=str(payload.get("action") or ""))
        await self._run_bounded(self._router.handle_github(event.event_type, payload), event)
        return web.Response(status=200, text="OK")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _run_bounded(self, coro: Awaitable[None], event: WebhookEvent) -> None:
        """Wait for routing, but never longer than the response budget.

        Whatever is still running after the budget keeps going in the
        background and the caller gets its 200 anyway.
        """
        task: asyncio.Task[None] = asyncio.ensure_future(coro)
        # Tracked until done, even if this handler is cancelled while waiting
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        task.add_done_callback(lambda t: _log_task_failure(t, event))

        done, _ = await asyncio.wait(
            {task}, timeout=self._settings.server.webhook_response_timeout
        )
        if task in done:
            return

        log.warning(
            "webhook_handling_deferred",
            source=event.source,
            event_type=event.event_type,
            delivery=event.delivery_id,
        )


def _log_task_failure(task: asyncio.Task[None], event: WebhookEvent) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.error(
            "webhook_handling_failed",
            source=event.source,
            event_type=event.event_type,
            error=repr(exc),
        )

