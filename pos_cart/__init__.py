"""Point-of-sale cart line editor."""

__version__ = "0.1.0"
