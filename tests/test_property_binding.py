from __future__ import annotations

import pytest

from uibind import IllegalBindingState, Property


def test_bind_pulls_source_value_and_fires_listener() -> None:
    source = Property("hello", name="source")
    target = Property("", name="target")
    seen: list[tuple[str, str]] = []
    target.add_listener(lambda old, new: seen.append((old, new)))

    target.bind(source)

    assert target.get() == "hello"
    assert target.is_bound()
    assert seen == [("", "hello")]


def test_bound_property_follows_source_and_rejects_writes() -> None:
    a = Property(0, name="a")
    b = Property(1, name="b")
    seen: list[int] = []
    a.add_listener(lambda old, new: seen.append(new))

    a.bind(b)
    b.set(7)

    assert a.get() == b.get() == 7
    assert seen == [1, 7]
    with pytest.raises(IllegalBindingState):
        a.set(3)
    assert a.get() == 7


def test_unbind_is_idempotent_and_stops_tracking() -> None:
    a = Property(0)
    b = Property(1)
    a.bind(b)

    a.unbind()
    a.unbind()

    a.set(42)
    b.set(9)
    assert a.get() == 42
    assert not a.is_bound()


def test_unbind_on_never_bound_property_is_noop() -> None:
    Property(0).unbind()


def test_rebinding_drops_previous_source() -> None:
    first = Property("first")
    second = Property("second")
    target = Property("")

    target.bind(first)
    target.bind(second)
    first.set("changed first")

    assert target.get() == "second"
    second.set("changed second")
    assert target.get() == "changed second"


def test_binding_to_self_fails() -> None:
    p = Property(0)
    with pytest.raises(IllegalBindingState):
        p.bind(p)


def test_binding_cycle_is_rejected() -> None:
    a = Property(0)
    b = Property(0)
    c = Property(0)
    b.bind(a)
    c.bind(b)

    with pytest.raises(IllegalBindingState, match="cycle"):
        a.bind(c)
    assert not a.is_bound()


def test_chained_bindings_propagate() -> None:
    a = Property(0)
    b = Property(0)
    c = Property(0)
    b.bind(a)
    c.bind(b)

    a.set(5)

    assert c.get() == 5


def test_bind_to_read_only_view() -> None:
    source = Property(1)
    target = Property(0)

    target.bind(source.read_only())
    source.set(2)

    assert target.get() == 2


def test_binding_to_non_property_fails() -> None:
    with pytest.raises(IllegalBindingState):
        Property(0).bind(3)  # type: ignore[arg-type]


def test_dispose_detaches_dependents() -> None:
    source = Property(1)
    target = Property(0)
    target.bind(source)

    source.dispose()

    assert not target.is_bound()
    target.set(10)
    source.set(2)
    assert target.get() == 10


@pytest.mark.parametrize("clamp_first", [True, False])
def test_clamping_listener_on_source_keeps_dependent_in_sync(clamp_first: bool) -> None:
    src = Property(0, name="src")
    dep = Property(0, name="dep")

    def clamp(old: int, new: int) -> None:
        if new > 10:
            src.set(10)

    if clamp_first:
        src.add_listener(clamp)
        dep.bind(src)
    else:
        dep.bind(src)
        src.add_listener(clamp)

    src.set(99)

    assert src.get() == dep.get() == 10
