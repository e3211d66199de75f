# Core app-level configuration and utilities
from .config import settings
from . import auth

__all__ = ["settings", "auth"]
