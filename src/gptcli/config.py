# gptcli/config.py
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


import os
from pathlib import Path

# Base directory for user-specific configuration files.
CONFIG_DIR = Path(os.environ.get('XDG_CONFIG_HOME', Path.home() / '.config')) / 'gptcli'

# Base directory for all application-generated data files.
DATA_DIR = Path(os.environ.get('XDG_DATA_HOME', Path.home() / '.local/share')) / 'gptcli'

# --- Log and Data Directories (under DATA_DIR) ---
LOG_DIRECTORY = DATA_DIR / "logs"
CONVERSATIONS_DIRECTORY = DATA_DIR / "conversations"

# --- Specific File Paths ---
SETTINGS_FILE = CONFIG_DIR / "settings.json"
DOTENV_FILE = CONFIG_DIR / ".env"
RAW_LOG_FILE = LOG_DIRECTORY / "raw.log"
ROTATING_LOG_FILE = LOG_DIRECTORY / "gptcli.log"

# --- Environment ---
# Every setting can be overridden by an environment variable with this prefix,
# e.g. GPTCLI_MODEL. OPENAI_API_KEY is honoured as a fallback for the key.
ENV_PREFIX = "GPTCLI_"
FALLBACK_API_KEY_ENV = "OPENAI_API_KEY"

# --- Conversation store ---
# Bumped whenever the on-disk record layout changes.
RECORD_FORMAT_VERSION = 1
LOCKS_DIRNAME = ".locks"

# --- Titles ---
# Hard cap on stored title length, independent of what the model returns.
MAX_TITLE_LENGTH = 80
TITLE_MAX_TOKENS = 32

# Context size of the default model, used only for the usage readout.
MODEL_TOKEN_LIMIT = 128_000
