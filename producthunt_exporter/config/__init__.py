"""Configuration package for the Product Hunt exporter."""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
