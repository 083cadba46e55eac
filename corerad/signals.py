"""Signals which stop or reload the server."""

from __future__ import annotations

import signal
import sys
from typing import List, Union

SignalLike = Union[signal.Signals, int]

_WINDOWS = sys.platform == "win32"


def signals() -> List[signal.Signals]:
    """Return the signals which can interrupt this program."""
    if _WINDOWS:
        return [signal.SIGINT]
    return [signal.SIGINT, signal.SIGTERM, signal.SIGHUP]


def is_terminal(sig: SignalLike) -> bool:
    """Report whether a signal asks the program to stop rather than restart.

    SIGHUP indicates a restart where the platform has it.
    """
    hangup = getattr(signal, "SIGHUP", None)
    if _WINDOWS or hangup is None:
        return True
    return sig != hangup