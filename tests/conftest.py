"""Pytest configuration.

Qt bridge tests need a QApplication. We create a single one for the entire
session as early as possible (before collection imports Qt modules) and
cleanly shut it down at the end. Everything else runs without PySide6.
"""

from __future__ import annotations

import os
from typing import Any

import pytest

from uibind.dispatcher import Dispatcher, set_dispatcher
from uibind.metrics import metrics

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    """Ensure a QApplication exists before collecting/running tests."""

    # Import lazily so non-Qt environments can still import this conftest.
    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    # Headless CI has no display; the bridge only needs an event loop.
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

    global _APP

    app = QApplication.instance()
    if app is None:
        # Keep a strong ref so it isn't GC'd mid-session.
        _APP = QApplication([])
    else:
        _APP = app


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    """Attempt a clean Qt shutdown to avoid lingering threads at interpreter exit."""

    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    app = QApplication.instance()
    if app is None:
        return

    app.quit()
    app.processEvents()


@pytest.fixture
def dispatcher() -> Dispatcher:
    """A dispatcher whose UI thread is the test thread."""
    return Dispatcher()


@pytest.fixture(autouse=True)
def _isolate_globals():
    metrics.reset()
    yield
    set_dispatcher(None)
