"""
Thumbnail management for Creative Library.
"""

import logging
import os
import threading
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from PySide6.QtCore import QObject, Signal, QThreadPool, QRunnable, Slot
from sqlalchemy.exc import SQLAlchemyError

from ..config.manager import ConfigurationManager
from ..utils.ffmpeg_utils import FFmpegThumbnailGenerator, FFmpegError
from ..utils.file_utils import FileUtils
from ..utils.imagemagick_utils import ImageMagickPdfRenderer, ImageMagickError


logger = logging.getLogger(__name__)


PDF_MIME_TYPE = 'application/pdf'


class ThumbnailGenerationWorker(QRunnable):
    """Worker for generating one thumbnail in a background thread."""

    def __init__(self, manager, asset_id: int, source_path: str, mime_type: str, callback):
        super().__init__()
        self.manager = manager
        self.asset_id = asset_id
        self.source_path = source_path
        self.mime_type = mime_type
        self.callback = callback

    @Slot()
    def run(self):
        start_time = time.time()
        thumbnail_path = self.manager.generate_thumbnail(self.source_path, self.mime_type, self.asset_id)
        self.callback(self.asset_id, thumbnail_path, time.time() - start_time)


class ThumbnailManager(QObject):
    """Generates cached thumbnails and writes their path back to the asset."""

    # Signals
    thumbnail_generated = Signal(int, str)  # asset_id, thumbnail_path
    thumbnail_generation_failed = Signal(int, str)  # asset_id, error

    def __init__(self, config_manager: ConfigurationManager, repository=None,
                 generator=None, pdf_renderer=None):
        super().__init__()
        self.config_manager = config_manager
        self.repository = repository

        if generator is None:
            try:
                generator = FFmpegThumbnailGenerator(config_manager)
            except FFmpegError as e:
                logger.warning(f"FFmpeg not available for thumbnails: {e}")
        self.thumbnail_generator = generator

        if pdf_renderer is None:
            try:
                pdf_renderer = ImageMagickPdfRenderer(config_manager)
            except ImageMagickError as e:
                logger.warning(f"ImageMagick not available for PDF thumbnails: {e}")
        self.pdf_renderer = pdf_renderer

        # Configuration
        self.cache_directory = Path(self.config_manager.get('thumbnails.cache_directory', '.thumbnails'))
        self.size = self.config_manager.get('thumbnails.size', 256)
        self.video_time_offset = self.config_manager.get('thumbnails.video_time_offset', 0.1)
        self.max_cache_size_mb = self.config_manager.get('thumbnails.max_cache_size_mb', 1024)
        self.background_generation = self.config_manager.get('thumbnails.background_generation', True)

        FileUtils.ensure_directory(self.cache_directory)

        # Thread pool for background processing
        self.thread_pool = QThreadPool()
        self.thread_pool.setMaxThreadCount(self.config_manager.get('thumbnails.max_concurrent_workers', 4))

        self.completed_count = 0
        self._cache_lock = threading.Lock()

        logger.info(
            f"ThumbnailManager initialized (FFmpeg available: {self.thumbnail_generator is not None}, "
            f"ImageMagick available: {self.pdf_renderer is not None})"
        )

    def generate_thumbnail(self, source_file_path: Union[str, Path], mime_type: str,
                           asset_id: int) -> Optional[str]:
        """
        Render the thumbnail for one asset.

        The artifact is always ``<cache_directory>/<asset_id>.jpg``. Returns its
        path, or None when the type is unsupported, a converter is missing or
        rendering fails. Never raises.
        """
        output_path = self.get_thumbnail_file_path(asset_id)
        temp_path = output_path.with_name(f".{asset_id}.{uuid.uuid4().hex[:8]}.tmp.jpg")

        try:
            source = Path(source_file_path)
            if not source.is_file():
                logger.warning(f"Thumbnail source missing for asset {asset_id}: {source}")
                return None

            renderer = self._select_renderer(mime_type)
            if renderer is None:
                return None

            FileUtils.ensure_directory(self.cache_directory)
            if not renderer(source, temp_path):
                logger.warning(f"Thumbnail rendering failed for asset {asset_id} ({mime_type})")
                return None

            os.replace(temp_path, output_path)
            logger.debug(f"Thumbnail written for asset {asset_id}: {output_path}")
            return str(output_path)

        except Exception as e:
            logger.error(f"Error generating thumbnail for asset {asset_id}: {e}")
            return None

        finally:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError as e:
                    logger.debug(f"Could not remove temporary thumbnail {temp_path}: {e}")

    def _select_renderer(self, mime_type: Optional[str]):
        family = (mime_type or '').lower()

        if family.startswith('image/'):
            tool, renderer = self.thumbnail_generator, self._render_image
        elif family.startswith('video/'):
            tool, renderer = self.thumbnail_generator, self._render_video
        elif family == PDF_MIME_TYPE:
            tool, renderer = self.pdf_renderer, self._render_pdf
        else:
            logger.debug(f"No thumbnail renderer for MIME type {mime_type!r}")
            return None

        if tool is None:
            logger.warning(f"Converter for {mime_type} is not available, skipping thumbnail")
            return None
        return renderer

    def _render_image(self, source: Path, output_path: Path) -> bool:
        return self.thumbnail_generator.extract_image_thumbnail(source, output_path, self.size)

    def _render_video(self, source: Path, output_path: Path) -> bool:
        duration = self.thumbnail_generator.get_video_duration(source)
        if duration:
            timestamp = duration * self.video_time_offset
        else:
            timestamp = 1.0  # Default to 1 second
        return self.thumbnail_generator.extract_frame(source, output_path, timestamp, self.size)

    def _render_pdf(self, source: Path, output_path: Path) -> bool:
        return self.pdf_renderer.render_first_page(source, output_path, self.size)

    def queue_thumbnail_generation(self, asset_id: int, source_path: Union[str, Path], mime_type: str) -> None:
        """Generate a thumbnail out of band and record it on the asset."""
        if not self.background_generation:
            start_time = time.time()
            thumbnail_path = self.generate_thumbnail(source_path, mime_type, asset_id)
            self._on_thumbnail_generated(asset_id, thumbnail_path, time.time() - start_time)
            return

        worker = ThumbnailGenerationWorker(
            self,
            asset_id,
            str(source_path),
            mime_type,
            self._on_thumbnail_generated,
        )
        self.thread_pool.start(worker)

    def wait_for_done(self, timeout_ms: int = -1) -> bool:
        return self.thread_pool.waitForDone(timeout_ms)

    def _on_thumbnail_generated(self, asset_id: int, thumbnail_path: Optional[str],
                                generation_time: float) -> None:
        """Handle thumbnail generation completion."""
        with self._cache_lock:
            self.completed_count += 1
            check_cache = self.completed_count % 10 == 0

        if thumbnail_path is None:
            self.thumbnail_generation_failed.emit(asset_id, "Thumbnail generation failed")
            return

        if self.repository is not None:
            try:
                stored = self.repository.set_thumbnail_path(asset_id, thumbnail_path)
            except (SQLAlchemyError, RuntimeError) as e:
                logger.error(f"Error storing thumbnail path for asset {asset_id}: {e}")
                self.thumbnail_generation_failed.emit(asset_id, str(e))
                return

            if not stored:
                logger.warning(f"Asset {asset_id} was deleted before its thumbnail finished")
                self.thumbnail_generation_failed.emit(asset_id, "asset no longer exists")
                return

        logger.debug(f"Thumbnail for asset {asset_id} ready in {generation_time:.2f}s")
        self.thumbnail_generated.emit(asset_id, thumbnail_path)

        # Check cache size periodically
        if check_cache:
            self._check_cache_size()

    def get_thumbnail_file_path(self, asset_id: int) -> Path:
        return self.cache_directory / f"{int(asset_id)}.jpg"

    def thumbnail_exists(self, asset_id: int) -> bool:
        return self.get_thumbnail_file_path(asset_id).exists()

    def _check_cache_size(self) -> None:
        cache_size_mb = FileUtils.get_directory_size(self.cache_directory, '*.jpg') / (1024 * 1024)

        if cache_size_mb > self.max_cache_size_mb:
            logger.info(f"Cache size ({cache_size_mb:.1f} MB) exceeds limit ({self.max_cache_size_mb} MB)")
            self._cleanup_old_thumbnails()

    def _cached_thumbnails(self) -> List[Path]:
        # In-flight temp files start with a dot and are not cache entries
        return [f for f in self.cache_directory.glob("*.jpg") if not f.name.startswith('.')]

    def _evict(self, thumbnail_file: Path) -> bool:
        """Delete one cached file and clear the asset column that points at it."""
        try:
            thumbnail_file.unlink()
        except OSError as e:
            logger.warning(f"Could not remove thumbnail {thumbnail_file}: {e}")
            return False

        if self.repository is not None and thumbnail_file.stem.isdigit():
            try:
                self.repository.set_thumbnail_path(int(thumbnail_file.stem), None)
            except (SQLAlchemyError, RuntimeError) as e:
                logger.error(f"Could not clear thumbnail path of asset {thumbnail_file.stem}: {e}")
        return True

    def _cleanup_old_thumbnails(self) -> None:
        """Remove the oldest quarter of the cache."""
        with self._cache_lock:
            thumbnail_files = sorted(self._cached_thumbnails(), key=lambda f: f.stat().st_mtime)
            removed = sum(self._evict(f) for f in thumbnail_files[:len(thumbnail_files) // 4])

        logger.info(f"Cleaned up {removed} old thumbnails")

    def get_cache_info(self) -> Dict[str, Any]:
        """Get information about thumbnail cache."""
        cache_size_bytes = FileUtils.get_directory_size(self.cache_directory, '*.jpg')
        thumbnail_count = len(self._cached_thumbnails())

        return {
            'cache_directory': str(self.cache_directory),
            'cache_size_bytes': cache_size_bytes,
            'cache_size_formatted': FileUtils.format_bytes(cache_size_bytes),
            'thumbnail_count': thumbnail_count,
            'max_cache_size_mb': self.max_cache_size_mb,
            'size': self.size,
        }

    def clear_cache(self) -> int:
        """Remove every cached thumbnail and return how many were deleted."""
        with self._cache_lock:
            removed = sum(self._evict(f) for f in self._cached_thumbnails())

        logger.info(f"Cleared {removed} thumbnails from cache")
        return removed

    def shutdown(self) -> None:
        """Shutdown thumbnail manager."""
        logger.info("ThumbnailManager shutting down")

        if not self.thread_pool.waitForDone(5000):  # 5 second timeout
            logger.warning("Some thumbnail generation workers did not complete in time")
