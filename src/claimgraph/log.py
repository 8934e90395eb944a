"""claimgraph.log — Logging setup for the claimgraph namespace."""

import logging

LOGGER_NAME = "claimgraph"


def setup_logging(level: str = "WARNING", json_format: bool = False) -> logging.Logger:
    """Configure the claimgraph logger once. JSON output uses python-json-logger."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    if not logger.handlers:
        handler = logging.StreamHandler()
        if json_format:
            from pythonjsonlogger.json import JsonFormatter
            formatter = JsonFormatter(
                fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
                rename_fields={"asctime": "timestamp", "levelname": "level"},
            )
        else:
            formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


__all__ = ["setup_logging", "LOGGER_NAME"]
