"""
logging_config.py: logging setup for the storefront API.

All modules log through ``logging.getLogger(__name__)``; this module installs
the shared handler and format once per process.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s"


def setup_logging(level="INFO"):
    """
    Configures the root logger for the application.

    Output goes to stdout so container runtimes can collect it. Calling this
    more than once only updates the level.
    """
    root = logging.getLogger()
    if not any(getattr(h, "_storefront", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._storefront = True
        root.addHandler(handler)
    root.setLevel(level)

    # Reduce verbosity from external libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
