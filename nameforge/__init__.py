"""
NameForge - rename images by context.

This package provides functionality to:
- Read capture dates and GPS coordinates from photo EXIF data
- Resolve coordinates to place names, with a persistent lookup cache
- Describe image content with a local AI model when no place is known
- Rename files collision-free as <date>_<place-or-description>.<ext>
"""

__version__ = "0.1.0"

from .core import NamingResult, PhotoRenamer
from .metadata import PhotoMetadata
from .naming import NamingConfig

__all__ = ["PhotoRenamer", "NamingResult", "NamingConfig", "PhotoMetadata"]
