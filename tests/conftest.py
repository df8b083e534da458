"""Pytest fixtures.

This file adjusts sys.path for src-layout imports.
"""

# ruff: noqa: E402

import os
import sys

# Ensure `src` is on sys.path so imports like `from docbind.core...` resolve during tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if os.path.isdir(SRC):
    sys.path.insert(0, SRC)
sys.path.insert(0, ROOT)

import pytest
from rich.traceback import install

from docbind.core.collection import Collection
from tests.mocks.driver import RecordingDriver
from tests.mocks.models import Order, User

# Enable readable tracebacks in development / test environments.
# Can be disabled with PYTEST_RICH=0
if os.getenv("PYTEST_RICH", "1") == "1":
    install(
        show_locals=True,  # show local variables for each frame
        width=None,  # use terminal width
        word_wrap=True,  # wrap long lines
        extra_lines=1,  # some context around lines
        suppress=["/usr/lib/python3", "site-packages"],  # hide "noisy" third-party frames
    )


@pytest.fixture
def driver():
    """Provide a fresh recording driver for each test."""
    return RecordingDriver()


@pytest.fixture
def users(driver):
    """Typed collection of users over the recording driver."""
    return Collection(User, driver)


@pytest.fixture
def orders(driver):
    """Typed collection of orders over the recording driver."""
    return Collection(Order, driver)
