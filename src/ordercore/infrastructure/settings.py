"""Runtime settings for the command line entry point.

Values come from CLI options; click falls back to the ``ORDERCORE_*``
environment variables when an option is not given.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEFAULT_DATA_DIR = Path("data")
DEFAULT_LOG_LEVEL = "WARNING"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class Settings:
    data_dir: Path = DEFAULT_DATA_DIR
    log_level: str = DEFAULT_LOG_LEVEL
    log_json: bool = False

    @property
    def outbox_path(self) -> Path:
        return self.data_dir / "notifications.jsonl"
