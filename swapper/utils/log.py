"""
Colored console printer for the swapper CLI.
"""

from datetime import datetime, timezone
from typing import Iterable

_BLUE, _GREEN, _YELLOW, _RED, _RESET = "\033[94m", "\033[92m", "\033[93m", "\033[91m", "\033[0m"

# color per SwapState value; unknown states print uncolored
_STATE_COLORS = {
    "Confirmed": _GREEN,
    "Failed": _RED,
    "Converting": _YELLOW,
    "AwaitingApproval": _YELLOW,
}


def _ts():
    return datetime.now(timezone.utc).strftime("%H:%M:%S")


def _emit(color: str, tag: str, msg: str):
    print(f"{color}[{_ts()}][{tag}]{_RESET} {msg}")


def log_info(msg: str):
    _emit(_BLUE, "INFO", msg)


def log_ok(msg: str):
    _emit(_GREEN, "OK", msg)


def log_warn(msg: str):
    _emit(_YELLOW, "WARN", msg)


def log_error(msg: str):
    _emit(_RED, "ERROR", msg)


def format_trail(states: Iterable[str]) -> str:
    """Validating -> Converting -> ... with each state colored."""
    return " -> ".join(f"{_STATE_COLORS.get(s, '')}{s}{_RESET if s in _STATE_COLORS else ''}" for s in states)
