"""
Logging setup shared by the CLI and library entry points.
"""

import logging

LOGGER_NAME = "vtranslate"

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    logger.setLevel(level)
