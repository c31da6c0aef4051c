"""Observable value cells with one-way and bidirectional binding.

A ``Property`` holds one value and notifies its listeners with ``(old, new)``
whenever the value changes. Notification is synchronous, on the calling
thread, in registration order. Setting the current value again is a no-op.

Binding modes are mutually exclusive per property:

- one-way (``bind``): the property mirrors a source and rejects direct writes;
- bidirectional (``bind_bidirectional``): two properties are kept equal and
  either side may be written.

A property created with a ``dispatcher`` is UI-affine: every mutation checks
that it runs on the dispatcher's UI thread.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from .errors import IllegalBindingState
from .logger import get_logger

if TYPE_CHECKING:
    from .dispatcher import Dispatcher

_logger = get_logger("property")

T = TypeVar("T")
Listener = Callable[[Any, Any], None]


class Property(Generic[T]):
    """Observable value cell."""

    def __init__(self, value: T, *, name: str = "", dispatcher: Dispatcher | None = None) -> None:
        self._value = value
        self._name = str(name)
        self._dispatcher = dispatcher
        self._listeners: list[Listener] = []
        self._version = 0

        # one-way binding
        self._bound_source: Property[T] | None = None
        self._dependents: list[Property[T]] = []

        # bidirectional binding
        self._peer: Property[T] | None = None
        self._syncing = False

    # ---- reads ----
    def get(self) -> T:
        return self._value

    @property
    def value(self) -> T:
        return self._value

    @property
    def name(self) -> str:
        return self._name

    @property
    def dispatcher(self) -> Dispatcher | None:
        return self._dispatcher

    def is_bound(self) -> bool:
        return self._bound_source is not None

    def is_bound_bidirectionally(self) -> bool:
        return self._peer is not None

    def read_only(self) -> ReadOnlyProperty[T]:
        return ReadOnlyProperty(self)

    # ---- writes ----
    def set(self, value: T) -> None:
        """Write a new value.

        Raises IllegalBindingState while the property mirrors a one-way source.
        """
        self._check_thread()
        if self._bound_source is not None:
            raise IllegalBindingState(f"{self!r} is bound to {self._bound_source!r}; unbind() before writing")
        self._apply(value)

    def _apply(self, value: T) -> bool:
        self._check_thread()
        old = self._value
        if old is value or old == value:
            return False
        self._value = value
        self._version += 1
        version = self._version
        _logger.debug("changed: %s %r -> %r", self._label(), old, value)

        try:
            for listener in list(self._listeners):
                listener(old, value)
                if self._version != version:
                    # A listener wrote again; that nested write notified the rest and synced the peer.
                    break
        finally:
            if self._version == version:
                self._sync_peer()
        return True

    def _sync_peer(self) -> None:
        peer = self._peer
        if peer is None or self._syncing:
            return
        current = self._value
        if peer._value is current or peer._value == current:
            return
        self._syncing = True
        try:
            peer._receive_from_peer(current)
        finally:
            self._syncing = False
        # A listener on the peer may have rewritten it while the echo guard was up.
        if self._peer is peer and peer._value != self._value:
            self._receive_from_peer(peer._value)

    def _receive_from_peer(self, value: T) -> None:
        # Guard stays raised while our own listeners run so the write is not echoed back.
        self._syncing = True
        try:
            self._apply(value)
        finally:
            self._syncing = False

    def _forward(self, old: T, new: T) -> None:  # noqa: ARG002
        # Mirror the source's current value; a later write may already have replaced ``new``.
        src = self._bound_source
        if src is not None:
            self._apply(src._value)

    # ---- listeners ----
    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> bool:
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    # ---- one-way binding ----
    def bind(self, source: Property[T] | ReadOnlyProperty[T]) -> None:
        """Mirror ``source``. Any previous one-way binding is dropped first."""
        src = _unwrap(source)
        self._check_thread()
        if src is self:
            raise IllegalBindingState(f"{self!r} cannot be bound to itself")
        if self._peer is not None:
            raise IllegalBindingState(f"{self!r} is bound bidirectionally; unbind_bidirectional() first")
        node = src._bound_source
        while node is not None:
            if node is self:
                raise IllegalBindingState(f"binding {self!r} to {src!r} would create a cycle")
            node = node._bound_source

        self.unbind()
        self._bound_source = src
        src._dependents.append(self)
        src.add_listener(self._forward)
        _logger.debug("bind: %s <- %s", self._label(), src._label())
        self._apply(src._value)

    def unbind(self) -> None:
        src = self._bound_source
        if src is None:
            return
        self._check_thread()
        self._bound_source = None
        src.remove_listener(self._forward)
        if self in src._dependents:
            src._dependents.remove(self)
        _logger.debug("unbind: %s <- %s", self._label(), src._label())

    # ---- bidirectional binding ----
    def bind_bidirectional(self, other: Property[T]) -> None:
        """Keep this property and ``other`` equal; this side takes ``other``'s value now."""
        if not isinstance(other, Property):
            raise IllegalBindingState(f"{other!r} is not writable and cannot be bound bidirectionally")
        self._check_thread()
        other._check_thread()
        if other is self:
            raise IllegalBindingState(f"{self!r} cannot be bound to itself")
        if self._peer is other:
            return
        if self._bound_source is not None or other._bound_source is not None:
            raise IllegalBindingState(
                f"cannot bind {self!r} and {other!r} bidirectionally while either is bound one-way"
            )
        if other._peer is not None:
            raise IllegalBindingState(f"{other!r} is already bound bidirectionally to {other._peer!r}")

        self.unbind_bidirectional()
        self._peer = other
        other._peer = self
        _logger.debug("bind_bidirectional: %s <-> %s", self._label(), other._label())
        self._receive_from_peer(other._value)

    def unbind_bidirectional(self) -> None:
        peer = self._peer
        if peer is None:
            return
        self._check_thread()
        self._peer = None
        if peer._peer is self:
            peer._peer = None
        _logger.debug("unbind_bidirectional: %s <-> %s", self._label(), peer._label())

    # ---- teardown ----
    def dispose(self) -> None:
        """Drop both binding modes, detach one-way dependents and forget all listeners."""
        self.unbind()
        self.unbind_bidirectional()
        for dep in list(self._dependents):
            dep.unbind()
        self._listeners.clear()

    # ---- helpers ----
    def _check_thread(self) -> None:
        if self._dispatcher is not None:
            self._dispatcher.assert_ui_thread()

    def _label(self) -> str:
        return self._name or f"Property@{id(self):x}"

    def __repr__(self) -> str:
        if self._bound_source is not None:
            mode = " bound"
        elif self._peer is not None:
            mode = " bidirectional"
        else:
            mode = ""
        return f"<Property {self._label()}={self._value!r}{mode}>"


class ReadOnlyProperty(Generic[T]):
    """Read-only view of a Property. Usable as a one-way binding source."""

    __slots__ = ("_prop",)

    def __init__(self, prop: Property[T]) -> None:
        self._prop = prop

    def get(self) -> T:
        return self._prop.get()

    @property
    def value(self) -> T:
        return self._prop.value

    @property
    def name(self) -> str:
        return self._prop.name

    def add_listener(self, listener: Listener) -> None:
        self._prop.add_listener(listener)

    def remove_listener(self, listener: Listener) -> bool:
        return self._prop.remove_listener(listener)

    def __repr__(self) -> str:
        return f"<ReadOnlyProperty {self._prop._label()}={self._prop.value!r}>"


def _unwrap(source: Property[T] | ReadOnlyProperty[T]) -> Property[T]:
    if isinstance(source, ReadOnlyProperty):
        return source._prop
    if isinstance(source, Property):
        return source
    raise IllegalBindingState(f"cannot bind to {source!r}: not a Property")
