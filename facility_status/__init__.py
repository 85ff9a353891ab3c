"""Read-only facility status API server."""

__version__ = "0.1.0"
