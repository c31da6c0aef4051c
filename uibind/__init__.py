"""Observable properties and UI-thread dispatch.

- ``Property``: observable value cell with one-way and bidirectional binding
- ``Dispatcher``: UI-thread FIFO queue (``run_on_ui_thread`` / ``drain``) and
  background workers (``spawn_worker``)
- ``uibind.qt_bridge``: Qt event-loop pump and QML-facing property adapter
  (imported separately so the core works without PySide6)
"""

from .dispatcher import (
    CancellationToken,
    DispatchHandle,
    Dispatcher,
    DispatchState,
    ErrorSink,
    FailureKind,
    LoggingErrorSink,
    WorkerHandle,
    get_dispatcher,
    set_dispatcher,
)
from .errors import (
    DispatchCallbackFailure,
    IllegalBindingState,
    TaskCancelled,
    TaskFailure,
    UIBindError,
    WrongThreadAccess,
)
from .property import Property, ReadOnlyProperty
from .settings_manager import DispatcherSettings

__all__ = [
    "CancellationToken",
    "DispatchCallbackFailure",
    "DispatchHandle",
    "DispatchState",
    "Dispatcher",
    "DispatcherSettings",
    "ErrorSink",
    "FailureKind",
    "IllegalBindingState",
    "LoggingErrorSink",
    "Property",
    "ReadOnlyProperty",
    "TaskCancelled",
    "TaskFailure",
    "UIBindError",
    "WorkerHandle",
    "WrongThreadAccess",
    "get_dispatcher",
    "set_dispatcher",
]
