"""Saved connection settings for the Moodle site.

Settings live in a YAML file under the platform config directory. The
password is never written there; see `moodleterm.secret`. Values from the
environment (or a `.env` file) take precedence over the saved file.
"""

import os
from dataclasses import dataclass
from pathlib import Path

import platformdirs
import yaml
from dotenv import load_dotenv
from loguru import logger

from moodleterm.moodle.client import DEFAULT_SERVICE, normalize_base_url

CONFIG_DIR_ENV = "MOODLETERM_CONFIG_DIR"


@dataclass
class SavedConfig:
    """Connection settings that are safe to persist.

    Attributes:
        base_url: Moodle site URL without trailing slash
        username: Moodle username
        service: Web service short name used when requesting tokens
    """

    base_url: str
    username: str
    service: str = DEFAULT_SERVICE

    def to_dict(self) -> dict:
        return {"base_url": self.base_url, "username": self.username, "service": self.service}


@dataclass
class RuntimeConfig(SavedConfig):
    """Saved settings plus the password needed to log in."""

    password: str = ""

    @classmethod
    def from_saved(cls, saved: SavedConfig, password: str) -> "RuntimeConfig":
        return cls(
            base_url=saved.base_url,
            username=saved.username,
            service=saved.service,
            password=password,
        )


def app_config_dir() -> Path:
    """Directory holding config, cache and fallback files.

    `MOODLETERM_CONFIG_DIR` overrides the platform default.
    """
    override = os.getenv(CONFIG_DIR_ENV)
    if override:
        return Path(override)
    return Path(platformdirs.user_config_dir("moodleterm"))


def config_file_path() -> Path:
    return app_config_dir() / "config.yaml"


def _clean_service(value) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return DEFAULT_SERVICE


def load_config() -> SavedConfig | None:
    """Load saved settings, applying environment overrides.

    Returns:
        The settings, or None if no base URL and username are known.
    """
    load_dotenv()
    data = {}
    path = config_file_path()
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
            if isinstance(loaded, dict):
                data = loaded
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Ignoring unreadable config file {path}: {e}")

    base_url = os.getenv("MOODLE_BASE_URL") or data.get("base_url")
    username = os.getenv("MOODLE_USERNAME") or data.get("username")
    service = os.getenv("MOODLE_SERVICE") or data.get("service")

    base_url = normalize_base_url(base_url) if isinstance(base_url, str) else ""
    username = username.strip() if isinstance(username, str) else ""
    if not base_url or not username:
        return None
    return SavedConfig(base_url=base_url, username=username, service=_clean_service(service))


def save_config(config: SavedConfig) -> Path:
    """Persist the non-secret settings and return the file path."""
    persisted = SavedConfig(
        base_url=normalize_base_url(config.base_url),
        username=config.username.strip(),
        service=_clean_service(config.service),
    )
    path = config_file_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(persisted.to_dict(), f, sort_keys=False)
    path.chmod(0o600)
    logger.debug(f"Config saved at {path}")
    return path


def clear_config() -> None:
    """Forget the saved settings."""
    path = config_file_path()
    if path.exists():
        path.unlink()
        logger.debug(f"Removed config file {path}")


def env_password() -> str | None:
    """Password supplied through `MOODLE_PASSWORD`, if any."""
    load_dotenv()
    return os.getenv("MOODLE_PASSWORD") or None
