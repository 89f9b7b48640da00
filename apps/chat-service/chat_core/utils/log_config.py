"""Logging setup shared by the service scripts."""
import logging
import os


def configure_logging() -> str:
    """Apply LOG_LEVEL (default INFO) to the root logger and return the level name."""
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level)
    logging.getLogger().setLevel(level)
    return level_name
