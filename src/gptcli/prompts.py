# gptcli/prompts.py
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
A centralized collection of prompts for automated AI tasks.
"""

DEFAULT_SYSTEM_PROMPT = (
    "You are a cheerful and helpful AI assistant. Answer as concisely as possible."
)

TITLE_PROMPT = (
    "How would you title the conversation above, up until this message? "
    "Answer with a short, descriptive title of 3-6 words. "
    "Reply with the title only: no quotes, no trailing punctuation, no explanation."
)
