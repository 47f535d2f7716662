"""Tests for Discord webhook delivery."""

import json

import httpx
import pytest

from oprelay.config import DiscordConfig
from oprelay.core.notifier import DiscordNotifier


class FakeDiscord:
    def __init__(self, status=204):
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status)

    def contents(self):
        return [json.loads(r.content)["content"] for r in self.requests]


@pytest.fixture
def config():
    return DiscordConfig(webhook_url="https://discord.example/hook")


def make_notifier(config, fake):
    return DiscordNotifier(config, transport=httpx.MockTransport(fake))


class TestSend:
    async def test_single_message(self, config):
        fake = FakeDiscord()
        notifier = make_notifier(config, fake)
        assert await notifier.send("hello") == 1
        assert fake.contents() == ["hello"]
        assert str(fake.requests[0].url) == "https://discord.example/hook"
        await notifier.close()

    async def test_long_message_chunked_in_order(self, config):
        fake = FakeDiscord()
        notifier = make_notifier(config, fake)
        text = "\n".join(f"line {i:04d} " + "x" * 40 for i in range(100))
        sent = await notifier.send(text)
        assert sent == len(fake.requests) > 1
        assert all(len(c) <= 1900 for c in fake.contents())
        assert "".join(fake.contents()) == text
        await notifier.close()

    async def test_explicit_target(self, config):
        fake = FakeDiscord()
        notifier = make_notifier(config, fake)
        await notifier.send("hi", "https://discord.example/summary")
        assert fake.requests[0].url.path == "/summary"
        await notifier.close()

    async def test_missing_url_is_noop(self):
        fake = FakeDiscord()
        notifier = make_notifier(DiscordConfig(), fake)
        assert await notifier.send("hello") == 0
        assert fake.requests == []
        await notifier.close()

    async def test_http_error_not_raised(self, config):
        fake = FakeDiscord(status=429)
        notifier = make_notifier(config, fake)
        assert await notifier.send("hello") == 0
        await notifier.close()

    async def test_transport_error_not_raised(self, config):
        def explode(request):
            raise httpx.ConnectError("refused", request=request)

        notifier = DiscordNotifier(config, transport=httpx.MockTransport(explode))
        assert await notifier.send("hello") == 0
        await notifier.close()

    async def test_empty_text_sends_nothing(self, config):
        fake = FakeDiscord()
        notifier = make_notifier(config, fake)
        assert await notifier.send("") == 0
        assert fake.requests == []
        await notifier.close()
