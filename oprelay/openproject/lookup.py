"""Name -> id resolution for OpenProject statuses and types."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

from oprelay.config import OpenProjectConfig
from oprelay.utils.logging import get_logger

log = get_logger(__name__)


class ListingSource(Protocol):
    async def list_statuses(self) -> list[dict[str, Any]]: ...

    async def list_types(self) -> list[dict[str, Any]]: ...


class IdResolver:
    """Resolves the "developed" status id and the task type id.

    An explicit override from config always wins. Otherwise the listing
    endpoint is queried once and the first case-insensitive name match is
    kept for the lifetime of the resolver. Concurrent first lookups may both
    hit the API; the cache holds a single string so the last write wins.
    """

    def __init__(self, config: OpenProjectConfig, source: ListingSource) -> None:
        self._config = config
        self._source = source
        self._status_id: str | None = None
        self._type_id: str | None = None

    async def status_id(self) -> str | None:
        if self._config.developed_status_id:
            return self._config.developed_status_id
        if self._status_id is None:
            self._status_id = await self._resolve(
                "status", self._config.developed_status_name, self._source.list_statuses
            )
        return self._status_id

    async def type_id(self) -> str | None:
        if self._config.task_type_id:
            return self._config.task_type_id
        if self._type_id is None:
            self._type_id = await self._resolve(
                "type", self._config.task_type_name, self._source.list_types
            )
        return self._type_id

    async def _resolve(
        self,
        kind: str,
        name: str,
        fetch: Callable[[], Awaitable[list[dict[str, Any]]]],
    ) -> str | None:
        wanted = name.lower()
        for element in await fetch():
            if str(element.get("name") or "").lower() == wanted:
                resolved = str(element.get("id"))
                log.info("lookup_cached", kind=kind, name=name, id=resolved)
                return resolved
        log.warning("lookup_not_found", kind=kind, name=name)
        return None
