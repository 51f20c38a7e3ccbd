"""
Application-wide logging setup.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s.%(msecs)03d [%(levelname)-8s] [%(name)-24s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: int | str = logging.INFO) -> None:
    """
    Configure the root logger with a single stdout handler.

    Safe to call more than once: existing root handlers are replaced so
    repeated app startups (tests, reloads) do not duplicate output.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    logging.getLogger(__name__).info("[LOG][configured] level=%s", logging.getLevelName(level))
