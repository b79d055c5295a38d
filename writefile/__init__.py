"""Write a single file onto a freshly mounted block device."""

from .__version__ import __version__

__all__ = ["__version__"]
