# gptcli/settings.py
# gptcli: A command-line interface for conversational AI models.
# Copyright (C) 2025 Dank A. Saurus

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY;
# without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
Layered application settings.

Values are resolved in increasing order of precedence: built-in defaults,
the JSON settings file, GPTCLI_* environment variables, then explicit
overrides (normally command-line flags). The result is an immutable
Settings object that is passed explicitly to whatever needs it.
"""

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping

from . import config, prompts, utils
from .logger import log


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""
    pass


@dataclass(frozen=True)
class Settings:
    api_key: str | None
    api_base: str
    model: str
    storage_dir: Path
    title_turn_threshold: int
    title_timeout: float
    title_input_budget: int
    api_timeout: float
    max_retries: int
    retry_backoff: float
    max_tokens: int
    system_prompt: str

    def require_api_key(self) -> str:
        """Returns the API key or raises ConfigError before any network call."""
        if not self.api_key:
            raise ConfigError(
                "No API key configured. Set OPENAI_API_KEY (or GPTCLI_API_KEY), "
                f"add it to {config.DOTENV_FILE}, or run `gptcli config set api_key <key>`."
            )
        return self.api_key

    def as_display_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["api_key"] = utils.redact(self.api_key)
        data["storage_dir"] = str(self.storage_dir)
        return data


def _get_default_settings() -> dict[str, Any]:
    """Returns a dictionary of the default application settings."""
    return {
        # --- Credentials & endpoint ---
        "api_key": None,
        "api_base": "https://api.openai.com/v1",
        "api_timeout": 60.0,
        "max_retries": 2,
        "retry_backoff": 1.5,
        # --- Models ---
        "model": "gpt-4o-mini",
        "max_tokens": 1024,
        "system_prompt": prompts.DEFAULT_SYSTEM_PROMPT,
        # --- Storage ---
        "storage_dir": str(config.CONVERSATIONS_DIRECTORY),
        # --- Titles ---
        "title_turn_threshold": 2,
        "title_timeout": 10.0,
        "title_input_budget": 3000,
    }


# Lower bounds for numeric settings; anything below is rejected.
_MINIMUMS: dict[str, float] = {
    "api_timeout": 1,
    "max_retries": 0,
    "retry_backoff": 1,
    "max_tokens": 1,
    "title_turn_threshold": 1,
    "title_timeout": 0,
    "title_input_budget": 1,
}


def _coerce(key: str, value: Any) -> Any:
    """Converts a raw value (often a string) to the type of the key's default."""
    default = _get_default_settings()[key]
    if value is None:
        return None

    try:
        if isinstance(default, int):
            converted = int(value)
        elif isinstance(default, float):
            converted = float(value)
        else:
            converted = str(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for '{key}': {value!r}") from e

    minimum = _MINIMUMS.get(key)
    if minimum is not None and converted < minimum:
        raise ConfigError(f"Setting '{key}' must be at least {minimum}, got {converted}.")
    return converted


def _read_settings_file(path: Path) -> dict[str, Any]:
    """Reads the user's settings file; a missing file is an empty layer."""
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read settings file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a JSON object.")

    known = _get_default_settings()
    unknown = sorted(k for k in data if k not in known)
    if unknown:
        log.warning("Ignoring unknown settings in %s: %s", path, ", ".join(unknown))
    return {k: v for k, v in data.items() if k in known}


def _read_environment(environ: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for key in _get_default_settings():
        env_name = f"{config.ENV_PREFIX}{key.upper()}"
        if environ.get(env_name):
            layer[key] = environ[env_name]
    if "api_key" not in layer and environ.get(config.FALLBACK_API_KEY_ENV):
        layer["api_key"] = environ[config.FALLBACK_API_KEY_ENV]
    return layer


def load_settings(
    overrides: Mapping[str, Any] | None = None,
    settings_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Resolves defaults, file, environment and overrides into a Settings object."""
    settings_file = settings_file or config.SETTINGS_FILE
    environ = os.environ if environ is None else environ

    merged = _get_default_settings()
    merged.update(_read_settings_file(settings_file))
    merged.update(_read_environment(environ))
    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})

    values = {key: _coerce(key, merged[key]) for key in _get_default_settings()}
    values["api_key"] = values["api_key"] or None
    values["storage_dir"] = Path(values["storage_dir"]).expanduser()
    log.debug("Settings resolved from %s and environment.", settings_file)
    return Settings(**values)


def save_setting(key: str, value: str, settings_file: Path | None = None) -> tuple[bool, str]:
    """Saves a single setting to the JSON file after type conversion."""
    settings_file = settings_file or config.SETTINGS_FILE
    if key not in _get_default_settings():
        return False, f"Unknown setting: '{key}'."

    try:
        converted_value = _coerce(key, value)
        current_settings = _read_settings_file(settings_file)
    except ConfigError as e:
        return False, f"Error: {e}"

    current_settings[key] = converted_value
    try:
        utils.ensure_dir_exists(settings_file.parent)
        with open(settings_file, "w", encoding="utf-8") as f:
            json.dump(current_settings, f, indent=2)
    except OSError as e:
        log.error("Failed to save settings: %s", e)
        return False, f"Failed to save settings: {e}"

    shown = utils.redact(converted_value) if key == "api_key" else converted_value
    return True, f"Setting '{key}' updated to '{shown}'."


def write_default_settings(settings_file: Path | None = None, overwrite: bool = False) -> Path:
    """Writes a settings file populated with the defaults."""
    settings_file = settings_file or config.SETTINGS_FILE
    if settings_file.exists() and not overwrite:
        raise ConfigError(f"Settings file already exists: {settings_file}")

    defaults = _get_default_settings()
    defaults["api_key"] = ""
    try:
        utils.ensure_dir_exists(settings_file.parent)
        with open(settings_file, "w", encoding="utf-8") as f:
            json.dump(defaults, f, indent=2)
    except OSError as e:
        raise ConfigError(f"Could not write settings file {settings_file}: {e}") from e
    return settings_file
