"""Tests for CLI logging setup."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from docquery.log import configure_logging


def _rich_handlers() -> list[logging.Handler]:
    return [h for h in logging.getLogger().handlers if isinstance(h, RichHandler)]


def test_configure_logging_installs_single_handler():
    configure_logging()
    configure_logging()
    assert len(_rich_handlers()) == 1
    assert logging.getLogger().level == logging.WARNING


def test_verbose_enables_debug():
    configure_logging(verbose=True)
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    configure_logging()
