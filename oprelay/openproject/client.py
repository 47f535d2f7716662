"""Thin async REST client for the OpenProject API v3."""

from __future__ import annotations

import json
from typing import Any

import httpx

from oprelay.config import OpenProjectConfig
from oprelay.openproject.lookup import IdResolver
from oprelay.utils.logging import get_logger

log = get_logger(__name__)

Filters = list[dict[str, Any]]

_LIST_PAGE_SIZE = 500


class OpenProjectClient:
    """Every call degrades to an empty result on failure and logs why.

    Callers cannot tell "the API said nothing matches" from "the API could
    not be reached"; both come back as an empty list, zero or None.
    """

    def __init__(
        self,
        config: OpenProjectConfig,
        resolver: IdResolver | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self.resolver = resolver or IdResolver(config, self)
        self._http: httpx.AsyncClient | None = None
        if config.configured:
            self._http = httpx.AsyncClient(
                base_url=f"{config.root_url}/api/v3",
                auth=httpx.BasicAuth("apikey", config.api_key),
                headers={"Accept": "application/json"},
                timeout=config.http_timeout,
                transport=transport,
            )

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------

    def _ready(self, what: str) -> bool:
        if self._http is None:
            log.error("openproject_not_configured", what=what,
                      msg="Set OPENPROJECT_BASE_URL and OPENPROJECT_API_KEY")
            return False
        return True

    async def _send(
        self,
        method: str,
        path: str,
        what: str,
        *,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> httpx.Response | None:
        if not self._ready(what):
            return None
        assert self._http is not None
        log.debug("openproject_request", method=method, path=path, what=what)
        try:
            resp = await self._http.request(method, path, params=params, json=body)
        except httpx.HTTPError as exc:
            log.error("openproject_request_failed", what=what, error=str(exc))
            return None
        if not resp.is_success:
            log.error(
                "openproject_api_error",
                what=what,
                status=resp.status_code,
                body=resp.text[:500],
            )
            return None
        return resp

    async def _get_json(
        self, path: str, what: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        resp = await self._send("GET", path, what, params=params)
        if resp is None:
            return None
        try:
            data = resp.json()
        except ValueError:
            log.error("openproject_bad_json", what=what)
            return None
        return data if isinstance(data, dict) else None

    @staticmethod
    def _elements(data: dict[str, Any] | None, key: str = "elements") -> list[dict[str, Any]]:
        if not data:
            return []
        return list((data.get("_embedded") or {}).get(key) or [])

    # ------------------------------------------------------------------
    # Work packages
    # ------------------------------------------------------------------

    async def fetch_work_packages(self, filters: Filters) -> list[dict[str, Any]]:
        data = await self._get_json(
            "/work_packages",
            "work_packages",
            params={
                "filters": json.dumps(filters),
                "pageSize": _LIST_PAGE_SIZE,
                "include": "status,assignee,project",
            },
        )
        return self._elements(data)

    async def fetch_count(self, filters: Filters) -> int:
        data = await self._get_json(
            "/work_packages",
            "work_package_count",
            params={"filters": json.dumps(filters), "pageSize": 1},
        )
        if not data:
            return 0
        total = data.get("total")
        if isinstance(total, bool) or not isinstance(total, int):
            return 0
        return total

    async def get_work_package(self, work_package_id: str) -> dict[str, Any] | None:
        return await self._get_json(f"/work_packages/{work_package_id}", "work_package")

    async def post_comment(self, work_package_id: str, text: str) -> bool:
        resp = await self._send(
            "POST",
            f"/work_packages/{work_package_id}/activities",
            "comment",
            body={"comment": {"raw": text}},
        )
        if resp is None:
            return False
        log.info("comment_posted", work_package=work_package_id, status=resp.status_code)
        return True

    async def set_status_developed(self, work_package_id: str) -> bool:
        """Move a work package to the configured "developed" status.

        Reads the record first for its ``lockVersion``. A stale lock version
        (409) is logged and left alone.
        """
        record = await self.get_work_package(work_package_id)
        if record is None:
            log.error("status_update_aborted", work_package=work_package_id,
                      reason="work package not readable")
            return False

        status_id = await self.resolver.status_id()
        if not status_id:
            log.warning("status_update_aborted", work_package=work_package_id,
                        reason="status id unresolved")
            return False

        log.info("status_updating", work_package=work_package_id, status_id=status_id)
        resp = await self._send(
            "PATCH",
            f"/work_packages/{work_package_id}",
            "status_update",
            body={
                "lockVersion": record.get("lockVersion"),
                "_links": {"status": {"href": f"/api/v3/statuses/{status_id}"}},
            },
        )
        if resp is None:
            return False
        log.info("status_updated", work_package=work_package_id, status_id=status_id)
        return True

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    async def list_statuses(self) -> list[dict[str, Any]]:
        data = await self._get_json("/statuses", "statuses")
        return self._elements(data, "statuses") or self._elements(data)

    async def list_types(self) -> list[dict[str, Any]]:
        data = await self._get_json("/types", "types")
        return self._elements(data)

    async def fetch_roadmaps(self) -> list[dict[str, Any]]:
        data = await self._get_json(
            "/versions",
            "versions",
            params={"pageSize": _LIST_PAGE_SIZE, "include": "project"},
        )
        return self._elements(data)

    async def fetch_users(self) -> list[dict[str, Any]]:
        data = await self._get_json(
            "/principals", "principals", params={"pageSize": _LIST_PAGE_SIZE}
        )
        return [p for p in self._elements(data) if p.get("_type") == "User"]

    async def fetch_user_detail(self, principal: dict[str, Any]) -> dict[str, Any]:
        """Full user record, falling back to the principal record, then *principal*."""
        principal_id = principal.get("id")
        for path in (f"/users/{principal_id}", f"/principals/{principal_id}"):
            data = await self._get_json(path, "user_detail")
            if data is not None:
                return data
        return principal
