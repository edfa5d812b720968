"""Console and file logging for command line runs."""

from __future__ import annotations

import logging
import os
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

#: Chatty dependency loggers kept at WARNING
NOISY_LOGGERS = ("web3", "urllib3", "requests")

#: Name prefix of handlers owned by :func:`setup_logging`; others are left alone
HANDLER_PREFIX = "vault-deploy-"


def setup_logging(
    log_dir: Path | str | None = None,
    *,
    default_level: str = "INFO",
) -> logging.Logger:
    """Install console, ``combined.log`` and ``error.log`` handlers on the root logger.

    The console level comes from ``LOG_LEVEL``; the combined file always
    records DEBUG and the error file ERROR and above.
    """
    level = os.getenv("LOG_LEVEL", default_level).upper()
    console_level = getattr(logging, level, None)
    if not isinstance(console_level, int):
        raise ValueError(f"Unknown LOG_LEVEL {level}")

    directory = Path(log_dir) if log_dir is not None else Path.cwd()
    directory.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.set_name(f"{HANDLER_PREFIX}console")
    console.setLevel(console_level)
    console.setFormatter(formatter)

    combined = logging.FileHandler(directory / "combined.log", encoding="utf-8")
    combined.set_name(f"{HANDLER_PREFIX}combined")
    combined.setLevel(logging.DEBUG)
    combined.setFormatter(formatter)

    errors = logging.FileHandler(directory / "error.log", encoding="utf-8")
    errors.set_name(f"{HANDLER_PREFIX}error")
    errors.setLevel(logging.ERROR)
    errors.setFormatter(formatter)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if not (handler.get_name() or "").startswith(HANDLER_PREFIX):
            continue
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.DEBUG)
    root.addHandler(console)
    root.addHandler(combined)
    root.addHandler(errors)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root
