"""HTTP uptime monitor: probe, diff against the last run, notify on change."""

from .changes import Transition, TransitionKind, detect_changes
from .checks import Outcome, probe, probe_with_retries
from .config import MonitorSettings, Target, load_settings
from .errors import ConfigError, MonitorError
from .main import RunResult, run, run_once
from .report import ReportMode, build_message

__all__ = [
    "ConfigError",
    "MonitorError",
    "MonitorSettings",
    "Outcome",
    "ReportMode",
    "RunResult",
    "Target",
    "Transition",
    "TransitionKind",
    "build_message",
    "detect_changes",
    "load_settings",
    "probe",
    "probe_with_retries",
    "run",
    "run_once",
]
