# src/hysim_core/log_config.py
import logging
import sys


def setup_logging(level=logging.INFO):
    """
    Configures the root logger with a single stdout handler.

    Any handlers already attached to the root logger are removed first, so the
    function can be called repeatedly (e.g., from an application that wants a
    different level) without duplicating output.
    """
    log_formatter = logging.Formatter(
        "%(asctime)s [%(levelname)-5.5s] [%(name)s] %(message)s"
    )
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(log_formatter)

    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)
    logging.debug(f"Logging configured at level {logging.getLevelName(level)}.")
