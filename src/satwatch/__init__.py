"""satwatch: satellite pass notifications for Telegram chats."""

__version__ = "0.1.0"
