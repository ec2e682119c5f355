"""Community mutual-aid resource directory service."""

__version__ = "0.1.0"
