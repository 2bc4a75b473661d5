"""
Creative Library - media asset library with version grouping.

Imports creative files into a local vault, tags them with business metadata and
keeps related creative variants ("versions") of the same asset grouped under a
single master record.
"""

__version__ = "1.0.0"
__author__ = "Creative Library Team"
__license__ = "MIT"

# Package metadata
__all__ = [
    "__version__",
    "__author__",
    "__license__",
]
