"""Live stream alert relay."""

__version__ = "0.1.0"
