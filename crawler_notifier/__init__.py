"""Crawler Notifier — watch listing sites and push new URLs to Telegram."""

__version__ = "1.0.0"
