from __future__ import annotations

import logging
import logging.handlers
import os

from config import Settings


DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FORMAT = "[{asctime}] [{levelname:<8}] {name}: {message}"


def configure_logging(settings: Settings) -> logging.Logger:
    """
    Install handlers on the root logger according to `settings`.

    Always logs to stderr; additionally writes a rotating log file when
    `settings.log_path` is set.
    """

    root = logging.getLogger()
    root.setLevel(settings.log_level)

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT, style="{")

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if settings.log_path:
        log_dir = os.path.dirname(settings.log_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=settings.log_path,
            encoding="utf-8",
            maxBytes=16 * 1024 * 1024,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # discord.py is chatty at DEBUG.
    logging.getLogger("discord.http").setLevel(logging.INFO)
    return root
