"""Banana Studio - prompt-to-image gateway with a shared public gallery."""

__version__ = "0.1.0"

from bananastudio.core.config import StudioConfig
from bananastudio.core.generation import ImageGenerator

__all__ = [
    "StudioConfig",
    "ImageGenerator",
]
