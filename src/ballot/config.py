"""Runtime configuration for the ballot command-line tool.

Settings come from the environment. A `.env` file in the working
directory is loaded first, without overriding variables already set.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv


DEFAULT_DATA_DIR = Path("data")
EVENTS_FILENAME = "events.jsonl"


@dataclass(frozen=True)
class BallotConfig:
    data_dir: Path = DEFAULT_DATA_DIR

    @property
    def events_path(self) -> Path:
        return self.data_dir / EVENTS_FILENAME

    @classmethod
    def from_env(cls, dotenv_path: Optional[Path] = None) -> BallotConfig:
        """Build config from BALLOT_DATA_DIR, after loading a .env file."""
        load_dotenv(dotenv_path or find_dotenv(usecwd=True))
        raw = os.environ.get("BALLOT_DATA_DIR", "").strip()
        return cls(data_dir=Path(raw) if raw else DEFAULT_DATA_DIR)
