from __future__ import annotations

import logging
from pathlib import Path

import pytest

from vault_deploy.log import HANDLER_PREFIX, setup_logging


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in list(root.handlers):
        if (handler.get_name() or "").startswith(HANDLER_PREFIX):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_setup_logging_writes_combined_and_error_files(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, restore_root: logging.Logger
) -> None:
    monkeypatch.setenv("LOG_LEVEL", "warning")

    setup_logging(tmp_path)
    logger = logging.getLogger("vault_deploy.test")
    logger.debug("debug line")
    logger.error("error line")

    ours = {h.get_name(): h for h in restore_root.handlers if (h.get_name() or "").startswith(HANDLER_PREFIX)}
    assert ours[f"{HANDLER_PREFIX}console"].level == logging.WARNING
    for handler in ours.values():
        handler.flush()
    combined = (tmp_path / "combined.log").read_text()
    errors = (tmp_path / "error.log").read_text()
    assert "debug line" in combined and "error line" in combined
    assert "error line" in errors and "debug line" not in errors
    assert logging.getLogger("web3").level == logging.WARNING


def test_setup_logging_replaces_its_own_handlers(tmp_path: Path, restore_root: logging.Logger) -> None:
    setup_logging(tmp_path)
    setup_logging(tmp_path)

    ours = [h for h in restore_root.handlers if (h.get_name() or "").startswith(HANDLER_PREFIX)]
    assert len(ours) == 3


def test_unknown_level_rejected(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("LOG_LEVEL", "chatty")
    with pytest.raises(ValueError):
        setup_logging(tmp_path)
