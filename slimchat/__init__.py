"""Client library for a small instant-messaging service: messages, user store, login, file transfer and chat state."""

__version__ = "2024.3.19"