"""Wall switch to dimmable light bridge."""

__version__ = "0.1.0"
