from __future__ import annotations

import httpx
import structlog

logger = structlog.get_logger(__name__)

DISCORD_MAX_MESSAGE_LEN = 2000
DELIVERY_TIMEOUT_SECONDS = 15.0


def split_discord_message(text: str, *, max_len: int = DISCORD_MAX_MESSAGE_LEN) -> list[str]:
    """
    Pack whole report lines into messages of at most ``max_len`` characters.

    Lines are never broken unless a single line is itself over the limit, in
    which case it is cut into ``max_len`` pieces. Blank text gives no parts.
    """
    max_len = max(1, int(max_len))
    parts: list[str] = []
    current: list[str] = []
    size = 0

    def flush() -> None:
        nonlocal current, size
        if current:
            parts.append("\n".join(current).strip("\n"))
        current = []
        size = 0

    for line in (text or "").strip().splitlines():
        if len(line) > max_len:
            flush()
            while len(line) > max_len:
                parts.append(line[:max_len])
                line = line[max_len:]
            if not line:
                continue
        extra = len(line) + (1 if current else 0)
        if current and size + extra > max_len:
            flush()
            extra = len(line)
        current.append(line)
        size += extra
    flush()
    return [p for p in parts if p]


def _redact(message: str, webhook_url: str) -> str:
    return message.replace(webhook_url, "<webhook>") if webhook_url else message


async def send_discord_message(client: httpx.AsyncClient, webhook_url: str, text: str) -> bool:
    try:
        resp = await client.post(webhook_url, json={"content": text}, timeout=DELIVERY_TIMEOUT_SECONDS)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning("discord delivery failed", error=_redact(f"{type(e).__name__}: {e}", webhook_url))
        return False
    if not resp.is_success:
        logger.warning("discord delivery rejected", status_code=resp.status_code)
        return False
    return True


async def deliver(client: httpx.AsyncClient, webhook_url: str | None, message: str) -> bool:
    """
    Post ``message`` to the webhook, split to fit Discord's length limit.

    Best-effort: returns ``False`` when delivery is disabled or any part fails,
    and never raises for transport problems. Callers log the result and move on.
    """
    if not webhook_url:
        logger.debug("no webhook configured, notification skipped")
        return False

    parts = split_discord_message(message)
    if not parts:
        return False

    ok_all = True
    for part in parts:
        ok_all = await send_discord_message(client, webhook_url, part) and ok_all
    return ok_all
