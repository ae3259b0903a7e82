"""HTTP transport for the automation engine."""

from src.api.app import create_app

__all__ = ["create_app"]
