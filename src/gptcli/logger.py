# gptcli/logger.py
# gptcli: A command-line interface for conversational AI models.
# Copyright (C) 2025 Dank A. Saurus

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY;
# without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.


import logging
import sys
from logging.handlers import RotatingFileHandler

from . import config

CONSOLE_HANDLER_NAME = "gptcli-console"


def setup_logger():
    """Configures and returns a project-wide logger."""
    logger = logging.getLogger("gptcli")
    logger.setLevel(logging.DEBUG)

    # Prevent propagation to the root logger to avoid duplicate messages
    logger.propagate = False

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Console output stays quiet unless something needs the user's attention;
    # -v lowers it via set_console_level().
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.set_name(CONSOLE_HANDLER_NAME)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(formatter)

    # --- Ensure log directory exists before creating the file handler ---
    try:
        log_dir = config.ROTATING_LOG_FILE.parent
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        # The logger isn't configured yet, so report straight to stderr.
        print(
            f"CRITICAL: Could not create log directory {log_dir}: {e}", file=sys.stderr
        )
        if not logger.handlers:
            logger.addHandler(console_handler)
        return logger

    # Rotates when the log reaches 1MB, keeping up to 5 backup logs.
    file_handler = RotatingFileHandler(
        config.ROTATING_LOG_FILE, maxBytes=1024 * 1024, backupCount=5, encoding="utf-8"
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)

    if not logger.handlers:
        logger.addHandler(console_handler)
        logger.addHandler(file_handler)

    return logger


def set_console_level(level: int) -> None:
    """Adjusts the verbosity of the stderr handler only."""
    for handler in log.handlers:
        if handler.get_name() == CONSOLE_HANDLER_NAME:
            handler.setLevel(level)


# Singleton logger instance to be imported by other modules
log = setup_logger()
