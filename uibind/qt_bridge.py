"""Qt event-loop integration.

- ``QtDispatchPump`` drains a Dispatcher from the Qt event loop whenever work
  is queued, from whichever thread queued it.
- ``PropertyBridge`` exposes a ``uibind.Property`` to Qt/QML as a notifying
  Qt property named ``value``.
"""

from __future__ import annotations

from functools import partial
from typing import Any

from PySide6.QtCore import Property as QtProperty
from PySide6.QtCore import QObject, Qt, Signal, Slot

from .dispatcher import Dispatcher
from .logger import get_logger
from .property import Property

_logger = get_logger("qt_bridge")


class QtDispatchPump(QObject):
    """Runs ``dispatcher.drain()`` on the Qt UI thread after each enqueue.

    Must be created on the dispatcher's UI thread (the thread running the Qt
    event loop). The wake-up signal uses a queued connection, so emitting it
    from a worker thread posts an event instead of draining in place.
    """

    _wake = Signal()

    def __init__(self, dispatcher: Dispatcher, parent: QObject | None = None) -> None:
        super().__init__(parent)
        dispatcher.assert_ui_thread()
        self._dispatcher = dispatcher
        self._drained = 0
        self._wake.connect(self._on_wake, Qt.ConnectionType.QueuedConnection)
        dispatcher.set_wakeup(self._wake.emit)
        if dispatcher.pending_count():
            self._wake.emit()

    @property
    def drained(self) -> int:
        return self._drained

    @Slot()
    def _on_wake(self) -> None:
        self._drained += self._dispatcher.drain()

    def detach(self) -> None:
        self._dispatcher.set_wakeup(None)


class PropertyBridge(QObject):
    """Qt-facing wrapper around a Property.

    Reads return the property's value; writes go through ``Property.set`` so
    binding and thread-affinity rules still apply. The listener is removed by
    ``detach()`` or automatically when the QObject is destroyed.
    """

    valueChanged = Signal(object)

    def __init__(self, prop: Property[Any], parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._prop = prop
        self._attached = True
        prop.add_listener(self._on_changed)
        self.destroyed.connect(partial(_release_listener, prop, self._on_changed))

    @property
    def prop(self) -> Property[Any]:
        return self._prop

    def _on_changed(self, old: Any, new: Any) -> None:  # noqa: ARG002
        self.valueChanged.emit(new)

    def _get_value(self) -> Any:
        return self._prop.get()

    def _set_value(self, value: Any) -> None:
        self._prop.set(value)

    value = QtProperty("QVariant", _get_value, _set_value, notify=valueChanged)  # type: ignore[arg-type]

    def detach(self) -> None:
        if not self._attached:
            return
        self._attached = False
        self._prop.remove_listener(self._on_changed)
        _logger.debug("PropertyBridge detached: %r", self._prop)


def _release_listener(prop: Property[Any], listener: Any, *_: Any) -> None:
    # Runs from QObject.destroyed; the bridge's C++ side is already gone.
    if prop.remove_listener(listener):
        _logger.debug("PropertyBridge destroyed, listener released: %r", prop)
