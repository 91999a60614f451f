from __future__ import annotations

import os
import random

import pytest
from PySide6.QtCore import QCoreApplication


@pytest.fixture(scope="session", autouse=True)
def _qt_app():
    # The live feed needs an application object but no display
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)
