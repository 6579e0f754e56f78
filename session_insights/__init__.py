"""Session insight rotation service: storage, services, HTTP API and CLI."""

__version__ = "0.1.0"
