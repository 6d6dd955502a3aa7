import logging

import pytest

from token_distributor.logging_setup import setup_logging


@pytest.fixture(autouse=True)
def restore_package_logger():
    package_logger = logging.getLogger("token_distributor")
    yield
    for handler in list(package_logger.handlers):
        handler.close()
        package_logger.removeHandler(handler)
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


def test_console_only(config):
    assert setup_logging(config) is None
    assert len(logging.getLogger("token_distributor").handlers) == 1


def test_file_logging_splits_errors(config, tmp_path):
    config.log_to_file = True
    config.log_level = "debug"

    main_log = setup_logging(config)
    logger = logging.getLogger("token_distributor.test")
    logger.info("routine message")
    logger.error("something broke")
    for handler in logging.getLogger("token_distributor").handlers:
        handler.flush()

    error_log = main_log.with_name(main_log.name.replace("distribution-", "errors-"))
    assert main_log.parent == tmp_path / "logs"
    assert "routine message" in main_log.read_text(encoding="utf-8")
    errors = error_log.read_text(encoding="utf-8")
    assert "something broke" in errors
    assert "routine message" not in errors


def test_repeated_setup_closes_previous_handlers(config):
    config.log_to_file = True
    setup_logging(config)
    first_handlers = list(logging.getLogger("token_distributor").handlers)
    file_handlers = [h for h in first_handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 2

    setup_logging(config)

    current = logging.getLogger("token_distributor").handlers
    assert not any(handler in current for handler in first_handlers)
    assert all(handler.stream is None for handler in file_handlers)
    assert len(current) == 3
