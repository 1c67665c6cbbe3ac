"""Core configuration, database and security utilities."""
