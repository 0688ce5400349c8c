"""Configuration package for the investlog engine."""

from .settings import AppSettings, get_settings

__all__ = ["AppSettings", "get_settings"]
