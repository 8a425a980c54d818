# File: tests/test_logger.py
import logging

from wiki_harvest.logger import configure, logger


def test_configure_writes_log_file(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    lg = configure(level="DEBUG", log_file=log_file, log_format="%(levelname)s:%(message)s")
    assert lg is logger
    assert lg.level == logging.DEBUG
    assert lg.propagate is False

    logger.debug("crawl started")
    for handler in logger.handlers:
        handler.flush()
    assert log_file.read_text(encoding="utf-8") == "DEBUG:crawl started\n"


def test_configure_replaces_or_appends_handlers(tmp_path):
    configure()
    assert len(logger.handlers) == 1
    configure(log_file=tmp_path / "run.log", replace_handlers=False)
    assert len(logger.handlers) == 3
    configure()
    assert len(logger.handlers) == 1
