import json
import logging
from pathlib import Path
from pydantic import ValidationError
from dotenv import dotenv_values

from .schemas import AppConfig

log = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".tickle"
DEFAULT_ENV_FILE = DEFAULT_CONFIG_DIR / ".env"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"

# .env keys and the AppConfig fields they override
ENV_OVERRIDES = {
    "TICKLE_HISTORY_DIRECTORY": "history_directory",
    "TICKLE_SYSTEMCTL": "systemctl_command",
}


def apply_env_overrides(app_config: AppConfig, env_path: Path) -> AppConfig:
    """Applies values from the .env file, when it exists, on top of the config."""
    if not env_path.exists():
        return app_config
    env_vars = dotenv_values(env_path)
    for key, field in ENV_OVERRIDES.items():
        if env_vars.get(key):
            setattr(app_config, field, env_vars[key])
    return app_config


def load_config(
    config_path: Path = DEFAULT_CONFIG_FILE,
    env_path: Path = DEFAULT_ENV_FILE,
) -> tuple[AppConfig, bool]:
    """
    Loads the application configuration from JSON and .env files.
    Missing files mean the defaults are used.

    Returns:
        tuple: (AppConfig, fell_back_to_defaults)
    """
    if not config_path.exists():
        log.debug(f"No configuration file at {config_path}, using defaults")
        return apply_env_overrides(AppConfig(), env_path), False

    try:
        with open(config_path, "r") as f:
            data = json.load(f)
        app_config = AppConfig(**data)
        return apply_env_overrides(app_config, env_path), False
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        # Keep quiet for now, but track that we fell back to defaults
        log.debug(f"Config fallback: {type(e).__name__}")
        return apply_env_overrides(AppConfig(), env_path), True


def save_config(config: AppConfig, config_path: Path = DEFAULT_CONFIG_FILE):
    """Saves the application configuration to the JSON file."""
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            f.write(config.model_dump_json(indent=4))
    except IOError:
        log.error(f"Could not save configuration to {config_path}.", exc_info=True)
        raise


class Config:
    """A configuration manager that handles loading and accessing app configuration."""

    def __init__(self, config_path: Path = DEFAULT_CONFIG_FILE, env_path: Path = DEFAULT_ENV_FILE):
        self._config_path = config_path
        self._env_path = env_path
        self._app_config, self._fell_back_to_defaults = load_config(config_path, env_path)

    @property
    def app_config(self) -> AppConfig:
        """Returns the loaded AppConfig object."""
        return self._app_config

    @property
    def fell_back_to_defaults(self) -> bool:
        """Returns True if the config fell back to defaults due to loading errors."""
        return self._fell_back_to_defaults

    @property
    def config_path(self) -> Path:
        return self._config_path

    def save(self):
        """Save the current configuration to file."""
        save_config(self._app_config, self._config_path)
        self._fell_back_to_defaults = False
