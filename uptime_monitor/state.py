from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

import structlog

from .checks import Outcome

logger = structlog.get_logger(__name__)


# On-disk state.json, keyed by target URL:
# {"https://example.com/health": true, ...}
PersistedState = dict[str, bool]


def coerce_state(raw: Any) -> PersistedState:
    """
    Best-effort decode of a loaded snapshot.
    Entries that are not ``str -> bool`` are dropped rather than failing the run.
    """
    if not isinstance(raw, dict):
        return {}
    return {url: value for url, value in raw.items() if isinstance(url, str) and url and isinstance(value, bool)}


def load_state(path: Path) -> PersistedState:
    """Read the previous run's snapshot; any failure means no prior knowledge."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, UnicodeDecodeError, ValueError) as e:
        logger.debug("state file unreadable, starting fresh", path=str(path), error=str(e))
        return {}
    return coerce_state(raw)


def save_state(path: Path, state: PersistedState) -> bool:
    """
    Replace the snapshot at ``path`` with ``state``.

    Writes to a sibling temp file first so a failed write leaves the previous
    snapshot in place. Returns ``False`` (after logging a warning) instead of
    raising.
    """
    path = Path(path)
    tmp = path.with_name(f"{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(json.dumps(state, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(path)
    except OSError as e:
        logger.warning("could not save state", path=str(path), error=str(e))
        try:
            tmp.unlink(missing_ok=True)
        except OSError:
            pass
        return False
    return True


def state_from_outcomes(outcomes: Iterable[Outcome]) -> PersistedState:
    return {o.url: o.up for o in outcomes if o.url}
