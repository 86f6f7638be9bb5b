"""
Top-level package for the Discord ChatGPT proxy bot.

This package hosts:
- config loading, validation and the immutable BotConfig model
- the admission gate, cooldown/consent stores and reply rendering
- the OpenAI completion/moderation wrapper
- the Discord client, slash commands and response buttons
"""

__version__ = "1.0.0"
