"""
Per-thread warning capture for fit stages.

`warnings.catch_warnings` swaps module-global state, so two stages running on
different threads would record each other's warnings. Instead one
`showwarning` hook is installed for the process and each warning is appended
to the list owned by the stage active on the emitting thread. Warnings raised
on threads with no active stage go to the previously installed handler.
"""
import contextlib
import threading
import warnings
from typing import Iterator, List

_ALWAYS = ("always", None, Warning, None, 0)

_local = threading.local()
_lock = threading.Lock()
_active = 0
_added_filter = False
_forward = warnings.showwarning


def _route(message, category, filename, lineno, file=None, line=None):
    sink = getattr(_local, "sink", None)
    if sink is None:
        _forward(message, category, filename, lineno, file, line)
        return
    sink.append(warnings.WarningMessage(message, category, filename, lineno, file, line))


def _ensure_hook() -> None:
    global _forward
    if warnings.showwarning is not _route:
        _forward = warnings.showwarning
        warnings.showwarning = _route


def _enter() -> None:
    global _active, _added_filter
    with _lock:
        _ensure_hook()
        # Repeats from the same code location must reach every stage.
        if warnings.filters[:1] != [_ALWAYS]:
            _added_filter = _added_filter or _ALWAYS not in warnings.filters
            warnings.simplefilter("always")
        _active += 1


def _exit() -> None:
    global _active, _added_filter
    with _lock:
        _active -= 1
        if _active == 0 and _added_filter:
            _added_filter = False
            if _ALWAYS in warnings.filters:
                warnings.filters.remove(_ALWAYS)


@contextlib.contextmanager
def capture_stage_warnings() -> Iterator[List[warnings.WarningMessage]]:
    """Collect warnings raised on the current thread while the block runs."""
    caught: List[warnings.WarningMessage] = []
    outer = getattr(_local, "sink", None)
    _local.sink = caught
    _enter()
    try:
        yield caught
    finally:
        _local.sink = outer
        _exit()
