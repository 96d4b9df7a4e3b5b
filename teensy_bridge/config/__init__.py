"""
Configuration package for bridge settings.
"""

from .settings import Settings

__all__ = ['Settings']
