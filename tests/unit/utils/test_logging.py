"""Test cases for logging utilities."""

import logging
import sys

from rich.logging import RichHandler

from locman.utils.logging import configure_module_logger, set_verbosity


class TestConfigureModuleLogger:
    """Test cases for configure_module_logger function."""

    def test_returns_named_logger(self) -> None:
        logger = configure_module_logger("locman.tests.named")
        assert logger.name == "locman.tests.named"
        assert logger.level == logging.INFO

    def test_rich_handler_writes_to_stderr(self) -> None:
        logger = configure_module_logger("locman.tests.rich")

        assert len(logger.handlers) == 1
        handler = logger.handlers[0]
        assert isinstance(handler, RichHandler)
        assert handler.console.stderr is True
        assert logger.propagate is False

    def test_plain_handler_without_colors(self) -> None:
        logger = configure_module_logger("locman.tests.plain", use_colors=False)

        handler = logger.handlers[0]
        assert not isinstance(handler, RichHandler)
        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stderr

    def test_reconfigure_replaces_handlers(self) -> None:
        configure_module_logger("locman.tests.again")
        logger = configure_module_logger("locman.tests.again", level=logging.WARNING)

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING


class TestSetVerbosity:
    """Test cases for set_verbosity function."""

    def test_enables_debug_for_package_loggers(self) -> None:
        logger = configure_module_logger("locman.tests.verbose")

        set_verbosity(True)
        try:
            assert logger.level == logging.DEBUG
            assert logging.getLogger("locman").level == logging.DEBUG
        finally:
            set_verbosity(False)

        assert logger.level == logging.INFO

    def test_leaves_foreign_loggers_alone(self) -> None:
        foreign = logging.getLogger("someoneelse.locman")
        foreign.setLevel(logging.ERROR)

        set_verbosity(True)
        set_verbosity(False)

        assert foreign.level == logging.ERROR
