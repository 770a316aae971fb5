"""
Layered settings for postmatch.

A setting is resolved from the first source that has it:
1. Environment variable (POSTMATCH_SIMILARITY_THRESHOLD, POSTMATCH_DB,
   POSTMATCH_RANK_WORKERS)
2. ~/.postmatch/config.json (directory overridable with POSTMATCH_CONFIG_DIR)
3. Defaults from config.py

Example config.json:
{
    "similarity_threshold": 0.9,
    "database_file": null,
    "rank_workers": 1
}

The similarity threshold is checked by load(), so a bad value stops the CLI
or the API at startup rather than on the first search. If the file is later
edited to an invalid threshold, searches keep the value load() accepted.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .config import (
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_RANK_WORKERS,
    DATABASE_FILE,
)
from .signature.matching import validate_threshold

logger = logging.getLogger(__name__)


class UserConfig:
    """
    Process-wide settings resolver.

    The config file is parsed once and cached until load() or reload();
    environment variables are consulted on every lookup.
    """

    _instance: Optional['UserConfig'] = None
    _file_data: Optional[dict] = None
    _loaded_threshold: Optional[float] = None

    def __new__(cls):
        # One resolver per process
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def config_dir(self) -> Path:
        """Directory holding config.json."""
        override = os.getenv('POSTMATCH_CONFIG_DIR')
        return Path(override) if override else Path.home() / '.postmatch'

    @property
    def config_file_path(self) -> Path:
        return self.config_dir / 'config.json'

    def _read_file(self) -> dict:
        """Parse config.json; a missing or unusable file counts as empty."""
        path = self.config_file_path
        if not path.exists():
            return {}

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable config file {path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring config file {path}: top level is not an object")
            return {}
        logger.debug(f"Read settings from {path}")
        return data

    @property
    def _data(self) -> dict:
        if self._file_data is None:
            self._file_data = self._read_file()
        return self._file_data

    def load(self) -> 'UserConfig':
        """
        Re-read the config file and check every setting that can be invalid.

        Raises:
            InvalidThresholdConfig: If the similarity threshold is not in (0, 1]
        """
        self._file_data = None
        threshold = self.similarity_threshold
        self._loaded_threshold = threshold
        logger.debug(f"Settings loaded, similarity threshold {threshold}")
        return self

    def reload(self):
        """Forget everything read so far; the next lookup re-reads the file."""
        self._file_data = None
        self._loaded_threshold = None

    @property
    def loaded_threshold(self) -> Optional[float]:
        """Threshold accepted by the last successful load(), or None."""
        return self._loaded_threshold

    def get(self, key: str, default: Any = None, env_var: Optional[str] = None) -> Any:
        """
        Resolve one setting.

        Environment values are decoded as JSON when possible ("0.8" -> 0.8)
        and used as plain strings otherwise. A null in the config file falls
        through to the default.

        Args:
            key: Key in config.json
            default: Value when no source has the setting
            env_var: Environment variable that overrides the file
        """
        if env_var:
            raw = os.getenv(env_var)
            if raw is not None:
                try:
                    return json.loads(raw)
                except ValueError:
                    return raw

        value = self._data.get(key)
        return default if value is None else value

    @property
    def similarity_threshold(self) -> float:
        """
        Similarity threshold in (0, 1]; matches need distance < 1 - threshold.

        Raises:
            InvalidThresholdConfig: If the configured value is out of range
        """
        return validate_threshold(self.get(
            'similarity_threshold',
            default=DEFAULT_SIMILARITY_THRESHOLD,
            env_var='POSTMATCH_SIMILARITY_THRESHOLD'
        ))

    @property
    def rank_workers(self) -> int:
        """Threads used to score large candidate batches."""
        return int(self.get(
            'rank_workers',
            default=DEFAULT_RANK_WORKERS,
            env_var='POSTMATCH_RANK_WORKERS'
        ))

    @property
    def database_file(self) -> str:
        """Path to the SQLite database file."""
        return str(self.get('database_file', default=DATABASE_FILE, env_var='POSTMATCH_DB'))

    def create_example_config(self) -> bool:
        """Write config.json populated with the defaults."""
        self.config_dir.mkdir(parents=True, exist_ok=True)

        example = {
            "_comment": "postmatch user configuration",
            "similarity_threshold": DEFAULT_SIMILARITY_THRESHOLD,
            "database_file": None,
            "rank_workers": DEFAULT_RANK_WORKERS,
        }

        try:
            with open(self.config_file_path, 'w', encoding='utf-8') as f:
                json.dump(example, f, indent=2)
        except OSError as e:
            logger.error(f"Cannot write {self.config_file_path}: {e}")
            return False
        logger.info(f"Wrote example settings to {self.config_file_path}")
        return True


_user_config = UserConfig()


def get_user_config() -> UserConfig:
    """Return the process-wide UserConfig."""
    return _user_config
