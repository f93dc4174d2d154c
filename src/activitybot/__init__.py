"""GitHub activity feed to Telegram channel relay."""

__version__ = "0.1.0"
