from __future__ import annotations

import logging

from stockledger.app.core.config import Settings

DEV_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
PROD_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

NOISY_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


def configure_logging(settings: Settings) -> None:
    level = _coerce_level(settings.log_level)
    is_production = settings.app_env == "production"

    root = logging.getLogger()
    if not root.handlers:
        root.addHandler(logging.StreamHandler())
    root.setLevel(level)

    formatter = logging.Formatter(PROD_FORMAT if is_production else DEV_FORMAT)
    for handler in root.handlers:
        handler.setFormatter(formatter)

    if level > logging.DEBUG:
        for noisy in NOISY_LOGGERS:
            logging.getLogger(noisy).setLevel(logging.WARNING)


def _coerce_level(raw_level) -> int:
    if isinstance(raw_level, int):
        return raw_level
    if isinstance(raw_level, str):
        candidate = raw_level.strip().upper()
        level = getattr(logging, candidate, logging.INFO)
        if isinstance(level, int):
            return level
    return logging.INFO
