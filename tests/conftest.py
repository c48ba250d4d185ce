"""Shared pytest fixtures for imgwidth tests."""

import logging

import pytest

from imgwidth import logging as imgwidth_logging


@pytest.fixture(autouse=True)
def reset_logger():
    """Reset the logger state between tests so capsys sees its output."""
    imgwidth_logging._logger = None
    logging.getLogger("imgwidth").handlers.clear()
    yield
    imgwidth_logging._logger = None
    logging.getLogger("imgwidth").handlers.clear()
