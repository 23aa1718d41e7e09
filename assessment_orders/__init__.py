"""Assessment order query API and background completion worker."""

__version__ = "1.0.0"
