from __future__ import annotations

import threading

import pytest

from uibind import Dispatcher, DispatcherSettings, Property, WrongThreadAccess


def _run_in_thread(fn) -> list[BaseException]:  # noqa: ANN001
    errors: list[BaseException] = []

    def _target() -> None:
        try:
            fn()
        except Exception as e:
            errors.append(e)

    t = threading.Thread(target=_target)
    t.start()
    t.join()
    return errors


def test_is_ui_thread(dispatcher: Dispatcher) -> None:
    assert dispatcher.is_ui_thread()
    seen: list[bool] = []
    _run_in_thread(lambda: seen.append(dispatcher.is_ui_thread()))
    assert seen == [False]


def test_ui_affine_setter_rejects_other_threads(dispatcher: Dispatcher) -> None:
    status = Property("", name="status", dispatcher=dispatcher)

    errors = _run_in_thread(lambda: status.set("from worker"))

    assert len(errors) == 1
    assert isinstance(errors[0], WrongThreadAccess)
    assert status.get() == ""


def test_ui_affine_setter_accepts_ui_thread(dispatcher: Dispatcher) -> None:
    status = Property("", name="status", dispatcher=dispatcher)
    status.set("from ui")
    assert status.get() == "from ui"


def test_ui_affine_setter_via_run_on_ui_thread(dispatcher: Dispatcher) -> None:
    status = Property("", name="status", dispatcher=dispatcher)

    errors = _run_in_thread(lambda: dispatcher.run_on_ui_thread(status.set, "marshalled"))
    assert errors == []
    assert status.get() == ""

    dispatcher.drain()
    assert status.get() == "marshalled"


def test_forwarding_into_ui_affine_property_off_thread_fails(dispatcher: Dispatcher) -> None:
    model = Property(0, name="model")
    label = Property(0, name="label", dispatcher=dispatcher)
    label.bind(model)

    errors = _run_in_thread(lambda: model.set(1))

    assert len(errors) == 1
    assert isinstance(errors[0], WrongThreadAccess)
    assert label.get() == 0


def test_binding_calls_are_ui_affine(dispatcher: Dispatcher) -> None:
    label = Property("", dispatcher=dispatcher)
    other = Property("")

    errors = _run_in_thread(lambda: label.bind(other))
    errors += _run_in_thread(lambda: other.bind_bidirectional(label))

    assert [type(e) for e in errors] == [WrongThreadAccess, WrongThreadAccess]
    assert not label.is_bound()
    assert not label.is_bound_bidirectionally()


def test_assert_ui_thread_raises_off_thread(dispatcher: Dispatcher) -> None:
    dispatcher.assert_ui_thread()
    errors = _run_in_thread(dispatcher.assert_ui_thread)
    assert len(errors) == 1
    with pytest.raises(WrongThreadAccess):
        raise errors[0]


def test_affinity_enforcement_can_be_relaxed() -> None:
    dispatcher = Dispatcher(settings=DispatcherSettings(enforce_ui_affinity=False))
    status = Property("", dispatcher=dispatcher)

    errors = _run_in_thread(lambda: status.set("logged only"))

    assert errors == []
    assert status.get() == "logged only"


def test_explicit_ui_thread_id() -> None:
    ready = threading.Event()
    holder: dict = {}

    def ui_loop() -> None:
        holder["ident"] = threading.get_ident()
        ready.set()

    t = threading.Thread(target=ui_loop)
    t.start()
    t.join()
    assert ready.is_set()

    dispatcher = Dispatcher(ui_thread_id=holder["ident"])
    assert dispatcher.ui_thread_id == holder["ident"]
    assert not dispatcher.is_ui_thread()
    with pytest.raises(WrongThreadAccess):
        dispatcher.drain()
