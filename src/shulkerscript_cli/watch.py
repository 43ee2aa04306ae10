"""
Watch-trigger orchestrator.

File-system events are queued by a watchdog observer thread and consumed by
`WatchOrchestrator.run`, which owns a `WatchStateMachine` and invokes the
configured action. The machine is pure (time is passed in), so its ordering and
mutual-exclusion rules can be exercised without threads or a real file system.

    IDLE --event--> PENDING --deadline--> RUNNING --done--> IDLE
                    PENDING --event--> PENDING (deadline reset)
                                       RUNNING --event--> (deferred)
                                       RUNNING --done, deferred--> PENDING
    any --interrupt--> STOPPING --> STOPPED  (after the in-flight run, if any)
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

log = logging.getLogger(__name__)

# interruption is observed at least this often
TICK_SECONDS = 0.2


class State(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class EventKind(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"
    MOVED = "moved"


@dataclass(frozen=True)
class WatchEvent:
    path: Path
    kind: EventKind
    timestamp: float


class InvalidTransition(RuntimeError):
    pass


class WatchStateMachine:
    def __init__(self, debounce: float):
        if debounce < 0:
            raise ValueError("debounce must be >= 0")
        self.debounce = debounce
        self.state = State.IDLE
        # debounce window
        self.last_event: Optional[float] = None
        self.pending = False
        self.deferred_at: Optional[float] = None

    @property
    def deadline(self) -> Optional[float]:
        if self.state != State.PENDING or self.last_event is None:
            return None
        return self.last_event + self.debounce

    @property
    def stopped(self) -> bool:
        return self.state == State.STOPPED

    def event(self, now: float) -> None:
        if self.state in (State.IDLE, State.PENDING):
            self.state = State.PENDING
            self.last_event = now
            self.pending = True
        elif self.state == State.RUNNING:
            self.deferred_at = now
        # STOPPING / STOPPED: no new work

    def due(self, now: float) -> bool:
        deadline = self.deadline
        return deadline is not None and now >= deadline

    def start_run(self, *, initial: bool = False) -> None:
        allowed = (State.IDLE,) if initial else (State.PENDING,)
        if self.state not in allowed:
            raise InvalidTransition(f"cannot start a run from {self.state.value}")
        self.state = State.RUNNING
        self.last_event = None
        self.pending = False

    def finish_run(self) -> None:
        if self.state == State.STOPPING:
            self.state = State.STOPPED
            return
        if self.state != State.RUNNING:
            raise InvalidTransition(f"no run in progress ({self.state.value})")
        if self.deferred_at is not None:
            # debounce counts from the last change seen during the run
            self.state = State.PENDING
            self.last_event = self.deferred_at
            self.pending = True
            self.deferred_at = None
        else:
            self.state = State.IDLE

    def interrupt(self) -> None:
        if self.state == State.RUNNING:
            self.state = State.STOPPING
        elif self.state != State.STOPPED:
            self.state = State.STOPPED
        self.pending = False


class WatchOrchestrator:
    """Runs `action` once per settled batch of qualifying events, never concurrently."""

    def __init__(
        self,
        action: Callable[[], Any],
        *,
        debounce: float,
        initial_run: bool = True,
        is_qualifying: Optional[Callable[[Path], bool]] = None,
        on_start: Optional[Callable[[bool], None]] = None,
        on_result: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.action = action
        self.machine = WatchStateMachine(debounce)
        self.initial_run = initial_run
        self.is_qualifying = is_qualifying or (lambda _p: True)
        self.on_start = on_start
        self.on_result = on_result
        self.on_error = on_error
        self.clock = clock
        self.events: "queue.Queue[WatchEvent]" = queue.Queue()
        self.runs = 0
        self._stop = threading.Event()

    # -- called from other threads / signal handlers --

    def notify(self, path: str | Path, kind: EventKind = EventKind.MODIFIED) -> None:
        self.events.put(WatchEvent(Path(path), kind, self.clock()))

    def stop(self) -> None:
        self._stop.set()

    # -- controller loop --

    @property
    def state(self) -> State:
        return self.machine.state

    def _accept(self, ev: WatchEvent) -> None:
        if self.is_qualifying(ev.path):
            log.debug("event %s %s", ev.kind.value, ev.path)
            self.machine.event(ev.timestamp)

    def _drain(self) -> None:
        while True:
            try:
                ev = self.events.get_nowait()
            except queue.Empty:
                return
            self._accept(ev)

    def _invoke(self, initial: bool) -> None:
        self.machine.start_run(initial=initial)
        self.runs += 1
        if self.on_start:
            self.on_start(initial)
        try:
            result = self.action()
        except Exception as e:
            # a failing action never stops the watch loop
            log.debug("action raised", exc_info=True)
            if self.on_error:
                self.on_error(e)
        else:
            if self.on_result:
                self.on_result(result)
        # everything that arrived during the run is deferred, not lost
        self._drain()
        if self._stop.is_set():
            self.machine.interrupt()
        self.machine.finish_run()

    def run(self) -> int:
        """Block until stopped. Returns the number of action invocations."""
        if self.initial_run and not self._stop.is_set():
            self._invoke(initial=True)

        while not self.machine.stopped:
            if self._stop.is_set():
                self.machine.interrupt()
                continue
            deadline = self.machine.deadline
            timeout = TICK_SECONDS if deadline is None else min(TICK_SECONDS, max(0.0, deadline - self.clock()))
            try:
                self._accept(self.events.get(timeout=timeout))
            except queue.Empty:
                pass
            if self._stop.is_set():
                continue
            if self.machine.due(self.clock()):
                self._invoke(initial=False)
        return self.runs


# ---------------- watchdog wiring ----------------

_KINDS = {
    "created": EventKind.CREATED,
    "modified": EventKind.MODIFIED,
    "deleted": EventKind.REMOVED,
    "moved": EventKind.MOVED,
}


class EventForwarder(FileSystemEventHandler):
    """Translates watchdog events into orchestrator notifications."""

    def __init__(self, orchestrator: WatchOrchestrator):
        super().__init__()
        self.orchestrator = orchestrator

    def on_any_event(self, event: FileSystemEvent) -> None:
        kind = _KINDS.get(event.event_type)
        if kind is None:
            return
        if event.is_directory and kind == EventKind.MODIFIED:
            return
        # a move qualifies if either end is watched
        paths = [event.src_path]
        if kind == EventKind.MOVED and getattr(event, "dest_path", ""):
            paths.append(event.dest_path)
        for path in paths:
            if isinstance(path, bytes):
                path = path.decode()
            self.orchestrator.notify(path, kind)


def path_filter(watched: Sequence[Path]) -> Callable[[Path], bool]:
    roots = [Path(p).resolve() for p in watched]

    def is_qualifying(path: Path) -> bool:
        p = Path(path).resolve()
        return any(p == r or r in p.parents for r in roots)

    return is_qualifying


def start_observer(paths: Iterable[Path], orchestrator: WatchOrchestrator) -> tuple[Any, List[Path]]:
    """Schedule every existing path; files are watched through their parent folder.

    Returns the started observer and the paths that do not exist.
    """
    observer = Observer()
    handler = EventForwarder(orchestrator)
    missing: List[Path] = []
    scheduled = set()
    for p in paths:
        p = Path(p).resolve()
        if p.is_dir():
            target, recursive = p, True
        elif p.exists():
            target, recursive = p.parent, False
        else:
            missing.append(p)
            continue
        key = (target, recursive)
        if key in scheduled:
            continue
        scheduled.add(key)
        observer.schedule(handler, str(target), recursive=recursive)
    observer.start()
    return observer, missing
