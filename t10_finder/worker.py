"""Background detection thread for UI callers."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Optional

from .discovery import Detection, DeviceFinder

_logger = logging.getLogger(__name__)


class DetectionState:
    """Single detection slot shared between a worker and a UI thread.

    Writers and readers hold the lock only to swap or copy the value, never
    during I/O, so reads do not wait on a probe in progress.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._found: Optional[Detection] = None

    def get(self) -> Optional[Detection]:
        with self._lock:
            return self._found

    def set_found(self, detection: Detection) -> None:
        with self._lock:
            self._found = detection

    def clear(self) -> None:
        with self._lock:
            self._found = None

    @property
    def found(self) -> bool:
        return self.get() is not None


@dataclass(frozen=True)
class WorkerEvent:
    kind: str  # "scan", "found" or "stopped"
    detection: Optional[Detection] = None


class DetectionWorker(threading.Thread):
    """Run DeviceFinder.watch() off the UI thread.

    Progress is posted to `events`; the result is also written to `state` if
    one is given. stop() cancels the loop and waits for the thread.
    """

    def __init__(
        self,
        finder: DeviceFinder,
        *,
        state: Optional[DetectionState] = None,
        events: Optional["queue.Queue[WorkerEvent]"] = None,
    ) -> None:
        super().__init__(name="t10-detection", daemon=True)
        self.finder = finder
        self.state = state
        self.events: "queue.Queue[WorkerEvent]" = events if events is not None else queue.Queue()
        self.cancel = threading.Event()

    def run(self) -> None:
        detection: Optional[Detection] = None
        try:
            detection = self.finder.watch(self.cancel, on_scan=self._scanning)
            if detection is not None:
                if self.state is not None:
                    self.state.set_found(detection)
                self.events.put(WorkerEvent("found", detection))
        finally:
            self.events.put(WorkerEvent("stopped", detection))
            _logger.debug("Detection worker stopped")

    def _scanning(self) -> None:
        self.events.put(WorkerEvent("scan"))

    def stop(self, timeout: Optional[float] = None) -> None:
        self.cancel.set()
        if self.is_alive():
            self.join(timeout)
