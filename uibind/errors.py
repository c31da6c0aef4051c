"""Exceptions raised by the binding engine and the dispatcher.

Binding and thread-affinity violations are programmer errors and are raised
immediately. Failures of asynchronous work are wrapped and handed to the
caller (worker handles) or to the error sink (queued UI callbacks).
"""

from __future__ import annotations

from typing import Any


class UIBindError(RuntimeError):
    """Base exception for all uibind failures."""


class IllegalBindingState(UIBindError):
    """Raised when a write or bind call violates binding rules."""


class WrongThreadAccess(UIBindError):
    """Raised when UI-owned state is touched from a thread other than the UI thread."""


class TaskCancelled(UIBindError):
    """Raised inside a worker task that observed a cancellation request."""


class TaskFailure(UIBindError):
    """A worker task raised; the original exception is the ``__cause__``."""

    def __init__(self, task: Any, message: str) -> None:
        super().__init__(message)
        self.task = task


class DispatchCallbackFailure(UIBindError):
    """A callback queued onto the UI thread raised; the original exception is the ``__cause__``."""

    def __init__(self, callback: Any, message: str) -> None:
        super().__init__(message)
        self.callback = callback
