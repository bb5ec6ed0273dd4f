"""Utility modules"""

from .logger import logger

__all__ = [
    'logger'
]
