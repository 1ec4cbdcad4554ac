"""Global test fixtures and setup"""

import logging

import pytest


@pytest.fixture(autouse=True)
def isolated_log_level():
    """The CLI's --verbose flag changes the root log level, which should not leak between tests"""
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)
