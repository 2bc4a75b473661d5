"""
ImageMagick integration for rendering PDF thumbnails.
"""

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class ImageMagickError(Exception):
    """Exception raised when ImageMagick is unavailable."""
    pass


class ImageMagickPdfRenderer:
    """Renders the first page of a PDF to a flattened JPEG."""

    def __init__(self, config_manager):
        self.config_manager = config_manager
        self.executable_path = self.config_manager.get('imagemagick.executable_path', 'magick')
        self.timeout = self.config_manager.get('imagemagick.timeout', 60)

        self._verify_imagemagick()

    def _verify_imagemagick(self) -> None:
        try:
            result = subprocess.run(
                [self.executable_path, '-version'],
                capture_output=True,
                text=True,
                timeout=5
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            raise ImageMagickError(f"ImageMagick verification failed: {e}")

        if result.returncode != 0:
            raise ImageMagickError(f"ImageMagick not found at {self.executable_path}")

    def render_first_page(self, pdf_path: Path, output_path: Path, resolution: int) -> bool:
        """
        Render page one of ``pdf_path`` into ``output_path``.

        Transparency is flattened onto white and the image is shrunk to fit a
        ``resolution`` square, never enlarged.
        """
        cmd = [
            self.executable_path,
            f"{pdf_path}[0]",
            '-resize', f"{resolution}x{resolution}>",
            '-background', 'white',
            '-alpha', 'remove',
            '-alpha', 'off',
            str(output_path),
        ]

        logger.debug(f"ImageMagick command: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            logger.debug(f"ImageMagick timed out after {self.timeout}s for {pdf_path}")
            return False
        except OSError as e:
            logger.debug(f"ImageMagick could not start: {e}")
            return False

        if result.returncode == 0 and output_path.exists() and output_path.stat().st_size > 0:
            return True

        logger.debug(f"ImageMagick failed for {pdf_path}: {result.stderr}")
        return False
