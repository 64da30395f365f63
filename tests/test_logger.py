from __future__ import annotations

import logging

from portal.utils.logger import LOG_FORMAT, configure_logging, get_logger


def test_configure_logging_installs_one_handler_and_adjusts_level() -> None:
    root = logging.getLogger()
    previous_level = root.level
    get_logger("portal.tests")
    handler_count = len(root.handlers)

    try:
        configure_logging("debug")
        assert root.level == logging.DEBUG
        configure_logging("WARNING")
        assert root.level == logging.WARNING
        assert len(root.handlers) == handler_count
    finally:
        root.setLevel(previous_level)

    formats = [handler.formatter._fmt for handler in root.handlers if handler.formatter]
    assert LOG_FORMAT in formats


def test_get_logger_returns_named_logger() -> None:
    assert get_logger("portal.services.example").name == "portal.services.example"
