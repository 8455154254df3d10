from __future__ import annotations

import argparse
import asyncio
import os
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Sequence
from zoneinfo import ZoneInfo

import httpx
import structlog

from .changes import Transition, detect_changes
from .checks import Outcome, SleepFunc, probe_with_retries
from .config import (
    DEFAULT_TIMEZONE,
    DEFAULT_TIMEZONE_LABEL,
    MonitorSettings,
    failure_webhook_url,
    load_settings,
)
from .discord import deliver
from .errors import ConfigError
from .log import setup_logging
from .report import ReportMode, build_failure_message, build_message, format_outcome_line, format_timestamp
from .state import load_state, save_state, state_from_outcomes

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RunResult:
    outcomes: list[Outcome]
    transitions: list[Transition]
    mode: ReportMode | None = None
    message: str | None = None
    delivered: bool = False
    state_saved: bool = False
    duration_ms: int = 0
    prior_state: dict[str, bool] = field(default_factory=dict)

    @property
    def notified(self) -> bool:
        return self.mode is not None


@asynccontextmanager
async def _client_scope(client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient() as owned:
        yield owned


def select_report_mode(transitions: Sequence[Transition], *, force_report: bool) -> ReportMode | None:
    if force_report:
        return ReportMode.FULL
    if transitions:
        return ReportMode.CHANGES
    return None


async def check_all(
    settings: MonitorSettings,
    client: httpx.AsyncClient,
    *,
    sleep: SleepFunc = asyncio.sleep,
) -> list[Outcome]:
    """Probe every active target concurrently; results keep configuration order."""
    results = await asyncio.gather(
        *(
            probe_with_retries(
                target,
                client,
                retries=settings.retries,
                cooldown_seconds=settings.cooldown_seconds,
                slow_threshold_ms=settings.slow_threshold_ms,
                sleep=sleep,
            )
            for target in settings.active_targets
        )
    )
    return list(results)


async def run_once(
    settings: MonitorSettings,
    *,
    client: httpx.AsyncClient | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> RunResult:
    """
    One monitor pass: probe, diff against the last snapshot, notify, persist.

    The snapshot is rewritten on every pass, whether or not a notification
    was sent.
    """
    if not settings.active_targets:
        logger.warning("no targets configured; set PROD_MONITOR_URL, STAGING_MONITOR_URL or DEV_MONITOR_URL")

    async with _client_scope(client) as http:
        started = time.perf_counter()
        outcomes = await check_all(settings, http, sleep=sleep)
        duration_ms = int(round((time.perf_counter() - started) * 1000.0))

        for outcome in outcomes:
            logger.info(format_outcome_line(outcome))

        prior_state = load_state(settings.state_file)
        transitions = detect_changes(outcomes, prior_state)
        mode = select_report_mode(transitions, force_report=settings.force_report)

        message: str | None = None
        delivered = False
        if mode is not None:
            message = build_message(
                outcomes,
                transitions,
                mode,
                timestamp=format_timestamp(tz=settings.tz),
                duration_ms=duration_ms,
                timezone_label=settings.timezone_label,
            )
            # Best-effort: a lost notification must not fail the run.
            delivered = await deliver(http, settings.webhook_url, message)
            if mode is ReportMode.FULL:
                logger.info("manual status report sent", delivered=delivered)
            else:
                logger.info("status change notification sent", delivered=delivered, transitions=len(transitions))
        else:
            logger.info("no changes detected - no notifications sent")

    # Best-effort as well; save_state logs its own warning.
    state_saved = save_state(settings.state_file, state_from_outcomes(outcomes))

    logger.info(
        "monitor run complete",
        up=sum(1 for o in outcomes if o.up),
        down=sum(1 for o in outcomes if not o.up),
        transitions=len(transitions),
        notified=mode is not None,
        duration_ms=duration_ms,
    )
    return RunResult(
        outcomes=outcomes,
        transitions=transitions,
        mode=mode,
        message=message,
        delivered=delivered,
        state_saved=state_saved,
        duration_ms=duration_ms,
        prior_state=prior_state,
    )


async def notify_failure(
    webhook_url: str | None,
    error: BaseException,
    *,
    tz: ZoneInfo | None = None,
    timezone_label: str = DEFAULT_TIMEZONE_LABEL,
    client: httpx.AsyncClient | None = None,
) -> bool:
    message = build_failure_message(
        error,
        timestamp=format_timestamp(tz=tz or ZoneInfo(DEFAULT_TIMEZONE)),
        timezone_label=timezone_label,
    )
    try:
        async with _client_scope(client) as http:
            return await deliver(http, webhook_url, message)
    except Exception as e:  # noqa: BLE001
        logger.warning("failure notification could not be sent", error=f"{type(e).__name__}: {e}")
        return False


async def run(
    settings: MonitorSettings,
    *,
    client: httpx.AsyncClient | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> int:
    """Run once and map the result to a process exit code."""
    try:
        await run_once(settings, client=client, sleep=sleep)
    except Exception as e:  # noqa: BLE001
        logger.exception("monitor failed")
        await notify_failure(
            settings.webhook_url,
            e,
            tz=settings.tz,
            timezone_label=settings.timezone_label,
            client=client,
        )
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="HTTP uptime monitor with Discord notifications")
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML config (defaults to $MONITOR_CONFIG)",
    )
    parser.add_argument(
        "--force-report",
        action="store_true",
        help="Send a full status report even when nothing changed",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (INFO, WARNING, ...)",
    )
    return parser


def main(argv: Sequence[str] | None = None, *, force_report: bool = False) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        settings = load_settings(
            Path(args.config) if args.config else None,
            force_report=True if (force_report or args.force_report) else None,
        )
    except Exception as e:  # noqa: BLE001
        if isinstance(e, ConfigError):
            logger.error("invalid configuration", error=str(e))
        else:
            logger.exception("monitor failed before start")
        asyncio.run(notify_failure(failure_webhook_url(args.config), e))
        return 1

    return asyncio.run(run(settings))


def status_report_main(argv: Sequence[str] | None = None) -> int:
    """Entry point that always sends the full status report."""
    code = main(argv, force_report=True)
    if code == 0:
        logger.info("status report completed")
    return code


if __name__ == "__main__":
    raise SystemExit(main())
