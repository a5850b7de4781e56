import logging

import pytest

from config import Config, config
from logging_config import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.parametrize("name, size, ok", [
    ("kauf.pdf", 1024, True),
    ("KAUF.TXT", 10, True),
    ("kauf.docx", 10, False),
    ("kauf.pdf", 0, False),
    ("kauf.pdf", config.MAX_FILE_SIZE_BYTES + 1, False),
])
def test_validate_file(name, size, ok):
    is_valid, error = config.validate_file(name, size)
    assert is_valid is ok
    assert (error is None) is ok


def test_setup_logging_writes_log_file(tmp_path, monkeypatch, restore_root_logger):
    monkeypatch.setattr(Config, "LOG_DIR", tmp_path / "logs")

    root = setup_logging(log_level="debug", log_file="extract.log", console_output=False)
    logging.getLogger("extractors.sbroker").debug("Section 'isin' matched")
    for handler in root.handlers:
        handler.flush()

    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert "Section 'isin' matched" in (tmp_path / "logs" / "extract.log").read_text(encoding="utf-8")
    assert logging.getLogger("fitz").level == logging.WARNING
