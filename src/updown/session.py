from __future__ import annotations

import enum
import logging
import threading
from typing import Callable, Optional, Protocol, TypeVar

from .errors import UpdownError

LOG = logging.getLogger(__name__)

T = TypeVar("T")


class StatusTask(Protocol):
    def run(self, lifetime: threading.Event) -> None:
        """Render progress until ``lifetime`` is set, then return promptly."""
        ...


class DrainFailure(UpdownError):
    """Raised when the status task failed while being shut down."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"status task failed: {cause}")
        self.cause = cause


class SessionState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    DONE = "done"


class SessionSupervisor:
    """Runs one operation while a status task renders progress on its own thread.

    The status task is cancelled only after the operation returns and is always
    joined before :meth:`run` returns. An operation error wins over any failure
    of the status task; the latter is reported only when the operation succeeded.
    """

    def __init__(self, status_task: StatusTask) -> None:
        self._status_task = status_task
        self._lifetime = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._drain_error: Optional[BaseException] = None
        self._state = SessionState.IDLE

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def lifetime(self) -> threading.Event:
        return self._lifetime

    def run(self, operation: Callable[[], T]) -> T:
        if self._state is not SessionState.IDLE:
            raise RuntimeError(f"Session already used (state: {self._state.value})")

        self._start()
        try:
            result = operation()
        except BaseException:
            self._drain()
            if self._drain_error is not None:
                LOG.debug("Discarding status task failure after operation error: %s", self._drain_error)
            raise

        self._drain()
        if self._drain_error is not None:
            raise DrainFailure(self._drain_error) from self._drain_error
        return result

    def _start(self) -> None:
        self._thread = threading.Thread(target=self._run_status_task, name="status-task")
        self._thread.start()
        self._transition(SessionState.RUNNING)

    def _run_status_task(self) -> None:
        try:
            self._status_task.run(self._lifetime)
        except Exception as exc:  # noqa: BLE001
            self._drain_error = exc

    def _drain(self) -> None:
        self._transition(SessionState.DRAINING)
        self._lifetime.set()
        if self._thread is not None:
            self._thread.join()
        self._transition(SessionState.DONE)

    def _transition(self, state: SessionState) -> None:
        LOG.debug("Session %s -> %s", self._state.value, state.value)
        self._state = state
