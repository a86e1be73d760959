"""Task scheduler web service with repeat rules and SQLite storage."""

__version__ = "0.1.0"

__all__ = ["__version__"]