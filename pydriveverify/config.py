"""Configuration for pydriveverify.

Settings are read from environment variables first and from
``~/.config/pydriveverify/config.json`` second.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .exceptions import DriveConfigError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://www.googleapis.com/drive/v3"

ACCESS_TOKEN_ENV = "DRIVE_ACCESS_TOKEN"
API_URL_ENV = "DRIVE_API_URL"
CONFIG_DIR_ENV = "PYDRIVEVERIFY_CONFIG_DIR"


class Config:
    """Access to stored and environment provided settings."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding ``config.json``. Defaults to
                ``$PYDRIVEVERIFY_CONFIG_DIR`` or ``~/.config/pydriveverify``
        """
        if config_dir is None:
            env_dir = os.environ.get(CONFIG_DIR_ENV)
            if env_dir:
                config_dir = Path(env_dir)
            else:
                config_dir = Path.home() / ".config" / "pydriveverify"
        self.config_dir = config_dir

    def get_config_path(self) -> Path:
        """Path of the JSON config file."""
        return self.config_dir / "config.json"

    def _load(self) -> dict[str, Any]:
        path = self.get_config_path()
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DriveConfigError(f"Cannot read config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise DriveConfigError(f"Config file {path} must contain a JSON object")
        return data

    def _save(self, data: dict[str, Any]) -> None:
        path = self.get_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        # The file holds a bearer token
        os.chmod(path, 0o600)
        logger.debug(f"Saved configuration to {path}")

    @property
    def access_token(self) -> Optional[str]:
        """OAuth access token for the drive API."""
        token = os.environ.get(ACCESS_TOKEN_ENV)
        if token:
            return token
        return self._load().get("access_token")

    @property
    def api_url(self) -> str:
        """Base URL of the drive API."""
        url = os.environ.get(API_URL_ENV)
        if url:
            return url
        return self._load().get("api_url") or DEFAULT_API_URL

    def is_configured(self) -> bool:
        """Whether an access token is available."""
        return bool(self.access_token)

    def save_access_token(self, token: str) -> None:
        """Store an access token in the config file."""
        data = self._load()
        data["access_token"] = token
        self._save(data)


config = Config()
