"""Discord webhook notifications."""

from __future__ import annotations

import httpx

from oprelay.config import DiscordConfig
from oprelay.core.chunker import chunk_message
from oprelay.utils.logging import get_logger

log = get_logger(__name__)


class DiscordNotifier:
    """Posts text to a Discord webhook, one request per chunk."""

    def __init__(
        self,
        config: DiscordConfig,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._http.aclose()

    async def send(self, text: str, webhook_url: str | None = None) -> int:
        """Deliver *text* and return how many chunks were accepted."""
        url = webhook_url or self._config.webhook_url
        if not url:
            log.warning("discord_webhook_not_configured",
                        msg="DISCORD_WEBHOOK_URL not set; skipping notification")
            return 0

        delivered = 0
        for chunk in chunk_message(text, config=self._config):
            try:
                resp = await self._http.post(url, json={"content": chunk})
            except httpx.HTTPError as exc:
                log.error("discord_webhook_failed", error=str(exc))
                continue
            if resp.is_success:
                delivered += 1
            else:
                log.error("discord_webhook_error", status=resp.status_code)
        log.debug("discord_notification_sent", chunks=delivered)
        return delivered
