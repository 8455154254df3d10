from __future__ import annotations

import httpx
import pytest

from uptime_monitor.discord import deliver


@pytest.mark.asyncio
async def test_deliver_posts_content_field(server) -> None:
    async with httpx.AsyncClient() as client:
        ok = await deliver(client, server.url("/webhook"), "hello **world**")
    assert ok is True
    assert server.posts == [{"content": "hello **world**"}]


@pytest.mark.asyncio
async def test_deliver_without_webhook_is_noop(server) -> None:
    async with httpx.AsyncClient() as client:
        assert await deliver(client, None, "ignored") is False
        assert await deliver(client, "", "ignored") is False
    assert server.posts == []


@pytest.mark.asyncio
async def test_deliver_swallows_rejection(server) -> None:
    async with httpx.AsyncClient() as client:
        ok = await deliver(client, server.url("/webhook-broken"), "hello")
    assert ok is False
    assert server.hits("/webhook-broken") == 1


@pytest.mark.asyncio
async def test_deliver_swallows_transport_errors() -> None:
    async with httpx.AsyncClient() as client:
        assert await deliver(client, "http://127.0.0.1:1/webhook", "hello") is False


@pytest.mark.asyncio
async def test_deliver_splits_long_messages(server) -> None:
    text = "\n".join(f"line {i:04d} " + "x" * 40 for i in range(100))
    async with httpx.AsyncClient() as client:
        ok = await deliver(client, server.url("/webhook"), text)
    assert ok is True
    posts = server.posts
    assert len(posts) > 1
    assert all(len(p["content"]) <= 2000 for p in posts)
    assert "\n".join(p["content"] for p in posts) == text
