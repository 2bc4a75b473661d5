"""
Utility modules for Creative Library.
"""

from .file_utils import FileUtils
from .ffmpeg_utils import FFmpegThumbnailGenerator, FFmpegError
from .imagemagick_utils import ImageMagickPdfRenderer, ImageMagickError

__all__ = [
    "FileUtils",
    "FFmpegThumbnailGenerator",
    "FFmpegError",
    "ImageMagickPdfRenderer",
    "ImageMagickError",
]
