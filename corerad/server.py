"""Coordination of the long-running tasks that make up the server."""

from __future__ import annotations

import logging
import queue
import signal
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence

from corerad.signals import is_terminal
from corerad.watcher import Subscription

NotifyFunc = Callable[..., None]

_ATTEMPTS = 40
_POLL_INTERVAL = 0.05


class LinkChangeError(Exception):
    """The state of a watched network link changed."""


class ServerClosed(Exception):
    """A server was shut down on purpose."""


class Task(Protocol):
    """A task run by the server until it is asked to stop."""

    def run(self, stop: threading.Event) -> None: ...

    def ready(self) -> threading.Event: ...


def _signal_name(sig: object) -> str:
    try:
        return signal.Signals(sig).name  # type: ignore[arg-type]
    except (ValueError, TypeError):
        return str(sig)


def _send(notify: Optional[NotifyFunc], *lines: str) -> None:
    # Notification failures are never fatal to the server.
    if notify is None:
        return
    try:
        notify(*lines)
    except OSError:
        pass


def _ready_event() -> threading.Event:
    event = threading.Event()
    event.set()
    return event


class Terminator:
    """Decides from a received signal whether the server halts or reloads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._term = False

    def set(self, sig) -> None:
        """Record the termination state implied by a signal."""
        with self._lock:
            self._term = is_terminal(sig)

    def terminate(self) -> bool:
        """Report whether server components should terminate completely."""
        with self._lock:
            return self._term


@dataclass
class WatcherTask:
    """A task which watches for link state changes."""

    watch: Callable[[threading.Event], None]
    logger: Optional[logging.Logger] = None

    def run(self, stop: threading.Event) -> None:
        """Run the watcher; an unsupported platform is logged and ignored."""
        try:
            self.watch(stop)
        except FileNotFoundError as err:
            if self.logger is not None:
                self.logger.info("cannot watch for network state changes, skipping: %s", err)
        except Exception as err:
            raise RuntimeError(f"failed to watch for interface state changes: {err}") from err

    def ready(self) -> threading.Event:
        """Return an already-set event: there is no readiness to wait for."""
        return _ready_event()

    def __str__(self) -> str:
        return "link state watcher"


@dataclass
class SignalTask:
    """A task which stops the server when a signal arrives on a queue."""

    signal_queue: "queue.Queue"
    cancel: Callable[[], None]
    logger: Optional[logging.Logger] = None
    notify: Optional[NotifyFunc] = None
    terminator: Terminator = field(default_factory=Terminator)

    def run(self, stop: threading.Event) -> None:
        """Wait for a signal or for stop, cancelling the server on a signal."""
        while True:
            if stop.is_set():
                return
            try:
                sig = self.signal_queue.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            break

        self.terminator.set(sig)
        msg = f"received {_signal_name(sig)}, shutting down"
        if self.logger is not None:
            self.logger.info("%s", msg)
        _send(self.notify, f"STATUS={msg}", "STOPPING=1")
        self.cancel()

    def ready(self) -> threading.Event:
        """Return an already-set event: there is no readiness to wait for."""
        return _ready_event()

    def __str__(self) -> str:
        return "signal watcher"


def serve_with_retries(
    stop: threading.Event,
    logger: Optional[logging.Logger],
    delay: float,
    fn: Callable[[], None],
) -> None:
    """Call fn until a listener starts, retrying on network errors.

    fn must raise: ServerClosed ends quietly, OSError is retried after delay
    seconds, anything else propagates. Raises TimeoutError once attempts run out.
    """
    for attempt in range(_ATTEMPTS):
        if stop.is_set():
            return
        if attempt and stop.wait(delay):
            return

        try:
            fn()
        except ServerClosed:
            return
        except OSError as err:
            if logger is not None:
                logger.warning(
                    "error starting HTTP debug server, %d attempt(s) remaining: %s",
                    _ATTEMPTS - (attempt + 1),
                    err,
                )
            continue
        raise RuntimeError("corerad: serve function should never return without error")

    raise TimeoutError("timed out starting HTTP debug server")


def link_state_watcher(
    stop: threading.Event, subscription: Optional[Subscription]
) -> Callable[[], None]:
    """Return a function which waits for stop or a link change.

    The function returns when stop is set or the subscription closes, and
    raises LinkChangeError when a change arrives.
    """

    def wait() -> None:
        if subscription is None:
            return
        while not stop.is_set():
            try:
                change = subscription.get(timeout=_POLL_INTERVAL)
            except TimeoutError:
                continue
            if change is None:
                # Watcher halted or not available on this platform.
                return
            raise LinkChangeError(f"link state changed: {change}")

    return wait


def run_tasks(
    tasks: Sequence[Task],
    signal_queue: "queue.Queue",
    logger: Optional[logging.Logger] = None,
    notify: Optional[NotifyFunc] = None,
) -> Terminator:
    """Run tasks until a signal arrives on signal_queue or a task fails.

    Returns the Terminator recording whether the server should halt completely.
    Raises RuntimeError naming the first task that failed.
    """
    stop = threading.Event()
    terminator = Terminator()
    all_tasks: List = [
        *tasks,
        SignalTask(signal_queue, stop.set, logger, notify, terminator),
    ]

    lock = threading.Lock()
    errors: List[BaseException] = []
    ready_flags = [False] * len(all_tasks)

    def run(task) -> None:
        try:
            task.run(stop)
        except Exception as err:
            wrapped = RuntimeError(f"failed to run task {task}: {err}")
            wrapped.__cause__ = err
            with lock:
                errors.append(wrapped)
            stop.set()

    def await_ready(position: int, task) -> None:
        event = task.ready()
        while not event.wait(_POLL_INTERVAL):
            if stop.is_set():
                return
        with lock:
            ready_flags[position] = True
        _send(notify, f"STATUS=started {task}")

    runners = [
        threading.Thread(target=run, args=(task,), name=str(task), daemon=True)
        for task in all_tasks
    ]
    waiters = [
        threading.Thread(target=await_ready, args=(i, task), daemon=True)
        for i, task in enumerate(all_tasks)
    ]

    def announce() -> None:
        for waiter in waiters:
            waiter.join()
        with lock:
            everything_ready = all(ready_flags)
        if everything_ready:
            _send(notify, "STATUS=server started, all tasks running", "READY=1")

    announcer = threading.Thread(target=announce, daemon=True)

    for thread in (*runners, *waiters, announcer):
        thread.start()

    for runner in runners:
        runner.join()
    stop.set()
    announcer.join()

    if errors:
        raise RuntimeError(f"failed to serve: {errors[0]}") from errors[0].__cause__
    return terminator