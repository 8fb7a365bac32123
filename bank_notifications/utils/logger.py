"""
Logging utilities

Library modules log through ``get_logger(__name__)``; the CLIs keep their
own console output.
"""
import logging
import os
from typing import Optional

_ROOT_LOGGER: Optional[logging.Logger] = None


def get_logger(name: str = "bank_notifications") -> logging.Logger:
    """Return a logger, configuring a simple formatter on first use"""
    global _ROOT_LOGGER
    if _ROOT_LOGGER is None:
        logging.basicConfig(
            level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        _ROOT_LOGGER = logging.getLogger("bank_notifications")
    return logging.getLogger(name)
