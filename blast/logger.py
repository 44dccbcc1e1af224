import logging
import os
import sys

RESET = "\x1b[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\x1b[36;20m",
    logging.INFO: "\x1b[32;20m",
    logging.WARNING: "\x1b[33;20m",
    logging.ERROR: "\x1b[31;20m",
    logging.CRITICAL: "\x1b[31;1m",
}
FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ColorFormatter(logging.Formatter):
    """Wraps each record in the ANSI color of its level."""

    def format(self, record):
        color = LEVEL_COLORS.get(record.levelno, RESET)
        return f"{color}{super().format(record)}{RESET}"


def setup_logger(name="blast"):
    """
    Attach a colored stdout handler to the ``name`` logger, once.

    The level is DEBUG when the ``DEBUG`` environment variable is set, INFO otherwise.
    Device construction and backward passes log at DEBUG level.
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if os.getenv("DEBUG") else logging.INFO)

    if not any(isinstance(h.formatter, ColorFormatter) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(ColorFormatter(FORMAT))
        logger.addHandler(handler)

    return logger
