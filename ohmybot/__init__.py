"""OhMyBot: anonymous hashtag feedback for Bot Framework channels."""

__version__ = "0.3.0"
