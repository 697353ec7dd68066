"""Logging setup: stderr console plus a rotating file under the log directory."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d - %(message)s"


def setup_logging() -> None:
    """Configure the root logger once; stdout stays free for the MCP stdio channel."""
    root = logging.getLogger()
    if getattr(root, "_tableprofile_configured", False):
        return

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    log_dir = Path(settings.log_dir)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / "tableprofile_mcp.log", maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    except OSError as e:
        root.warning(f"File logging disabled, cannot write to {log_dir}: {e}")

    root._tableprofile_configured = True
