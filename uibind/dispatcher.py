"""UI-thread affinity and background work.

One ``Dispatcher`` per process owns the identity of the UI thread and a FIFO
queue of callbacks that only the UI thread runs (``drain``). Any thread may
queue work with ``run_on_ui_thread``; long-running work goes to a fresh
thread via ``spawn_worker``.

Typical flow (a worker finishing and publishing its result)::

    def load(token):
        data = slow_io()
        token.raise_if_cancelled()
        dispatcher.run_on_ui_thread(status.set, "done")

    handle = dispatcher.spawn_worker(load)

The UI event loop calls ``dispatcher.drain()`` when idle; with Qt,
``uibind.qt_bridge.QtDispatchPump`` does it.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from enum import Enum
from typing import Any, Protocol

from .errors import DispatchCallbackFailure, TaskCancelled, TaskFailure, WrongThreadAccess
from .logger import get_logger
from .metrics import metrics
from .settings_manager import DispatcherSettings

_logger = get_logger("dispatcher")


class FailureKind(Enum):
    DISPATCH_CALLBACK = "dispatch_callback"
    WORKER_TASK = "worker_task"


class ErrorSink(Protocol):
    def report(self, target: Any, kind: FailureKind, error: BaseException) -> None: ...


class LoggingErrorSink:
    """Default error sink: log the failure with its traceback."""

    def __init__(self, logger=None) -> None:
        self._logger = logger or _logger

    def report(self, target: Any, kind: FailureKind, error: BaseException) -> None:
        cause = error.__cause__ or error
        self._logger.error(
            "%s failed: target=%s error=%s",
            kind.value,
            _describe(target),
            cause,
            exc_info=(type(cause), cause, cause.__traceback__),
        )


class DispatchState(Enum):
    ENQUEUED = "enqueued"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DispatchHandle:
    """Tracks one callback queued with ``run_on_ui_thread``."""

    def __init__(self, callback: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        self.callback = callback
        self._args = args
        self._kwargs = kwargs
        self._state = DispatchState.ENQUEUED
        self._exception: DispatchCallbackFailure | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> DispatchState:
        with self._lock:
            return self._state

    @property
    def failed(self) -> bool:
        return self._exception is not None

    @property
    def exception(self) -> DispatchCallbackFailure | None:
        return self._exception

    def cancel(self) -> bool:
        """Cancel if not started yet. Returns True when the callback will never run."""
        with self._lock:
            if self._state is DispatchState.ENQUEUED:
                self._state = DispatchState.CANCELLED
                metrics.inc("dispatcher.cancelled")
                return True
            return self._state is DispatchState.CANCELLED

    def _start(self) -> bool:
        with self._lock:
            if self._state is not DispatchState.ENQUEUED:
                return False
            self._state = DispatchState.RUNNING
            return True

    def _finish(self, error: DispatchCallbackFailure | None) -> None:
        with self._lock:
            self._exception = error
            self._state = DispatchState.COMPLETED

    def __repr__(self) -> str:
        return f"<DispatchHandle {_describe(self.callback)} {self.state.value}>"


class CancellationToken:
    """Cooperative cancellation flag polled by worker tasks."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TaskCancelled("task cancelled")

    def wait(self, timeout: float | None = None) -> bool:
        """Sleep up to ``timeout`` seconds; returns True early if cancellation was requested."""
        return self._event.wait(timeout)


class WorkerHandle:
    """Completion handle for a task started with ``spawn_worker``."""

    def __init__(self, task: Callable[..., Any], thread: threading.Thread, future: Future, token: CancellationToken):
        self.task = task
        self.thread = thread
        self._future = future
        self._token = token

    @property
    def name(self) -> str:
        return self.thread.name

    def cancel(self) -> None:
        """Request cancellation. A running task stops only if it polls its token."""
        self._token.cancel()

    def cancel_requested(self) -> bool:
        return self._token.cancelled

    def done(self) -> bool:
        return self._future.done()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the task finished. Returns False on timeout."""
        try:
            self._future.exception(timeout=timeout)
        except FutureTimeoutError:
            return False
        return True

    def result(self, timeout: float | None = None) -> Any:
        """Return the task's result.

        Raises TaskFailure if the task raised, TaskCancelled if it stopped on a
        cancellation request, TimeoutError if it did not finish in time.
        """
        return self._future.result(timeout=timeout)

    def exception(self, timeout: float | None = None) -> BaseException | None:
        return self._future.exception(timeout=timeout)

    def __repr__(self) -> str:
        state = "done" if self._future.done() else "running"
        return f"<WorkerHandle {self.name} {state}>"


class Dispatcher:
    """Serial UI-thread queue plus worker spawning.

    The UI thread is the thread that constructs the dispatcher unless
    ``ui_thread_id`` is given.
    """

    def __init__(
        self,
        *,
        ui_thread_id: int | None = None,
        error_sink: ErrorSink | None = None,
        settings: DispatcherSettings | None = None,
    ) -> None:
        self._ui_thread_id = ui_thread_id if ui_thread_id is not None else threading.get_ident()
        self._error_sink: ErrorSink = error_sink or LoggingErrorSink()
        self._settings = settings or DispatcherSettings()
        self._pending: deque[DispatchHandle] = deque()
        self._lock = threading.Lock()
        self._wakeup: Callable[[], None] | None = None
        self._worker_seq = 0
        _logger.debug("Dispatcher init: ui_thread=%s", self._ui_thread_id)

    # ---- thread affinity ----
    @property
    def ui_thread_id(self) -> int:
        return self._ui_thread_id

    @property
    def settings(self) -> DispatcherSettings:
        return self._settings

    @property
    def error_sink(self) -> ErrorSink:
        return self._error_sink

    def is_ui_thread(self) -> bool:
        return threading.get_ident() == self._ui_thread_id

    def assert_ui_thread(self) -> None:
        if self.is_ui_thread():
            return
        msg = (
            f"UI state accessed from thread {threading.current_thread().name!r}; "
            f"only the UI thread ({self._ui_thread_id}) may do this, use run_on_ui_thread()"
        )
        if self._settings.enforce_ui_affinity:
            raise WrongThreadAccess(msg)
        _logger.warning(msg)

    # ---- UI queue ----
    def set_wakeup(self, wakeup: Callable[[], None] | None) -> None:
        """Install the hook called after every enqueue (from the enqueuing thread)."""
        self._wakeup = wakeup

    def run_on_ui_thread(self, callback: Callable[..., Any], *args: Any, **kwargs: Any) -> DispatchHandle:
        """Queue ``callback(*args, **kwargs)`` to run on the UI thread. Never blocks."""
        handle = DispatchHandle(callback, args, kwargs)
        with self._lock:
            self._pending.append(handle)
            pending = len(self._pending)
        metrics.inc("dispatcher.enqueued")
        _logger.debug("enqueued: %s pending=%d", _describe(callback), pending)
        wakeup = self._wakeup
        if wakeup is not None:
            wakeup()
        return handle

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def drain(self, max_callbacks: int | None = None) -> int:
        """Run queued callbacks on the UI thread, oldest first.

        Only callbacks queued before the call are considered; anything queued
        while draining waits for the next drain. Returns the number of
        callbacks that ran.
        """
        self.assert_ui_thread()
        limit = max_callbacks if max_callbacks is not None else self._settings.drain_batch_limit
        with self._lock:
            available = len(self._pending)
        budget = limit if limit and limit > 0 else available

        # Cancelled handles are dropped without counting against the budget.
        ran = 0
        for _ in range(available):
            if ran >= budget:
                break
            with self._lock:
                if not self._pending:
                    break
                handle = self._pending.popleft()
            if not handle._start():
                continue
            self._run_callback(handle)
            ran += 1
        return ran

    def _run_callback(self, handle: DispatchHandle) -> None:
        slow_s = self._settings.slow_callback_ms / 1000.0
        start = time.perf_counter()
        error: DispatchCallbackFailure | None = None
        try:
            handle.callback(*handle._args, **handle._kwargs)
        except Exception as e:
            error = DispatchCallbackFailure(handle.callback, f"UI callback {_describe(handle.callback)} raised: {e}")
            error.__cause__ = e
            metrics.inc("dispatcher.failed")
            self._report(handle.callback, FailureKind.DISPATCH_CALLBACK, error)
        finally:
            elapsed = time.perf_counter() - start
            metrics.record("dispatcher.callback_duration", elapsed)
        handle._finish(error)
        if error is None:
            metrics.inc("dispatcher.completed")
        if elapsed > slow_s:
            _logger.warning("slow UI callback: %s took %.1fms", _describe(handle.callback), elapsed * 1000.0)

    # ---- workers ----
    def spawn_worker(
        self, task: Callable[..., Any], *args: Any, name: str | None = None, **kwargs: Any
    ) -> WorkerHandle:
        """Run ``task(token, *args, **kwargs)`` on a new thread.

        ``token`` is a CancellationToken the task should poll at safe points.
        """
        with self._lock:
            self._worker_seq += 1
            seq = self._worker_seq
        thread_name = name or f"{self._settings.worker_name_prefix}-{seq}"
        future: Future = Future()
        token = CancellationToken()

        def _run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                res = task(token, *args, **kwargs)
            except TaskCancelled as e:
                metrics.inc("workers.cancelled")
                _logger.debug("worker cancelled: %s", thread_name)
                future.set_exception(e)
            except Exception as e:
                failure = TaskFailure(task, f"worker {thread_name} ({_describe(task)}) raised: {e}")
                failure.__cause__ = e
                metrics.inc("workers.failed")
                self._report(task, FailureKind.WORKER_TASK, failure)
                future.set_exception(failure)
            except BaseException as e:
                # SystemExit and friends still end the thread, but waiters must not hang.
                future.set_exception(e)
                raise
            else:
                future.set_result(res)

        thread = threading.Thread(target=_run, name=thread_name, daemon=self._settings.worker_daemon)
        handle = WorkerHandle(task, thread, future, token)
        metrics.inc("workers.spawned")
        _logger.debug("spawn_worker: %s task=%s", thread_name, _describe(task))
        thread.start()
        return handle

    def _report(self, target: Any, kind: FailureKind, error: BaseException) -> None:
        try:
            self._error_sink.report(target, kind, error)
        except Exception:
            _logger.exception("error sink failed while reporting %s", kind.value)


_default_dispatcher: Dispatcher | None = None
_default_lock = threading.Lock()


def get_dispatcher() -> Dispatcher:
    """Return the process-wide dispatcher, creating it on the calling thread if needed."""
    global _default_dispatcher
    with _default_lock:
        if _default_dispatcher is None:
            _default_dispatcher = Dispatcher()
        return _default_dispatcher


def set_dispatcher(dispatcher: Dispatcher | None) -> None:
    global _default_dispatcher
    with _default_lock:
        _default_dispatcher = dispatcher


def _describe(obj: Any) -> str:
    name = getattr(obj, "__qualname__", None) or getattr(obj, "__name__", None)
    return str(name) if name else repr(obj)
