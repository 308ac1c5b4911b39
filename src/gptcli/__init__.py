"""gptcli: a command-line client for conversational AI models."""

__version__ = "0.2.0"
