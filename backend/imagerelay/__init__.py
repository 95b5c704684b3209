"""Self-hosted image upload/relay service and its mobile upload client."""

__version__ = "0.1.0"
