"""Aura assistant core package."""

from .app import AuraApp
from .config import AuraConfig

__all__ = ["AuraApp", "AuraConfig"]
