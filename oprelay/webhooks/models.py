"""Webhook event models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class WebhookEvent:
    source: str
    event_type: str
    action: str = ""
    body: bytes = b""
    signature: str | None = None
    delivery_id: str | None = None
