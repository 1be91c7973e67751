"""Password storage in the operating system keyring."""

import keyring
from keyring.errors import KeyringError, PasswordDeleteError
from loguru import logger

from moodleterm.config import SavedConfig

SECRET_SERVICE = "moodleterm"


def account_key(config: SavedConfig) -> str:
    """Keyring account name for a site/user/service combination."""
    return f"{config.base_url}|{config.username}|{config.service}"


def save_password(config: SavedConfig, password: str) -> bool:
    """Store the password. Returns False if no usable keyring backend exists."""
    try:
        keyring.set_password(SECRET_SERVICE, account_key(config), password)
    except KeyringError as e:
        logger.warning(f"Could not store password in keyring: {e}")
        return False
    return True


def load_password(config: SavedConfig) -> str | None:
    try:
        return keyring.get_password(SECRET_SERVICE, account_key(config))
    except KeyringError as e:
        logger.warning(f"Could not read password from keyring: {e}")
        return None


def clear_password(config: SavedConfig) -> None:
    try:
        keyring.delete_password(SECRET_SERVICE, account_key(config))
    except PasswordDeleteError:
        logger.debug("No stored password to delete")
    except KeyringError as e:
        logger.warning(f"Could not delete password from keyring: {e}")


def storage_diagnostic() -> tuple[bool, str]:
    """Report whether passwords can be remembered on this machine.

    Returns:
        (available, message) where message explains an unavailable backend.
    """
    backend = keyring.get_keyring()
    priority = getattr(backend, "priority", 0)
    if priority is None or priority <= 0:
        name = type(backend).__name__
        return False, f"No secure password storage available ({name}); you will be asked to log in each time."
    return True, ""
