"""
FFmpeg integration utilities for Creative Library.
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class FFmpegError(Exception):
    """Exception raised for FFmpeg-related errors."""
    pass


class FFmpegThumbnailGenerator:
    """Generates image and video thumbnails using FFmpeg."""

    def __init__(self, config_manager):
        self.config_manager = config_manager
        self.ffmpeg_path = self.config_manager.get('ffmpeg.executable_path', 'ffmpeg')
        self.ffprobe_path = self.config_manager.get('ffmpeg.ffprobe_path', 'ffprobe')
        self.timeout = self.config_manager.get('ffmpeg.timeout', 30)

        # Verify FFmpeg installation
        self._verify_ffmpeg()

    def _verify_ffmpeg(self) -> None:
        """Verify that FFmpeg and FFprobe are available."""
        try:
            result = subprocess.run(
                [self.ffmpeg_path, '-version'],
                capture_output=True,
                text=True,
                timeout=5
            )
            if result.returncode != 0:
                raise FFmpegError(f"FFmpeg not found at {self.ffmpeg_path}")

            result = subprocess.run(
                [self.ffprobe_path, '-version'],
                capture_output=True,
                text=True,
                timeout=5
            )
            if result.returncode != 0:
                logger.warning(f"FFprobe not found at {self.ffprobe_path}, video frames will be taken at 1s")
                self.ffprobe_path = None

        except (subprocess.TimeoutExpired, OSError) as e:
            raise FFmpegError(f"FFmpeg verification failed: {e}")

    def extract_frame(self, video_path: Path, output_path: Path,
                      timestamp: float, resolution: int) -> bool:
        """
        Extract a frame from video at specified timestamp.

        Args:
            video_path: Path to video file
            output_path: Path for output thumbnail
            timestamp: Time in seconds to extract frame
            resolution: Target bounding box in pixels

        Returns:
            True if successful
        """
        cmd = [
            self.ffmpeg_path,
            '-ss', str(timestamp),
            '-i', str(video_path),
            '-vframes', '1',
            '-vf', self._scale_filter(resolution),
            '-q:v', '2',  # High quality
            '-y',  # Overwrite output
            str(output_path)
        ]
        return self._run(cmd, output_path, "frame")

    def extract_image_thumbnail(self, image_path: Path, output_path: Path,
                                resolution: int) -> bool:
        """
        Generate thumbnail from an image file.

        Transparent images are composited against a white background first; if
        that filter graph fails the plain scale is tried.
        """
        alpha_cmd = [
            self.ffmpeg_path,
            '-i', str(image_path),
            '-vf', (
                f'{self._scale_filter(resolution)}:flags=lanczos,'
                f'split=2[bg][img];'
                f'[bg]format=rgb24,drawbox=c=white:t=fill[bg];'
                f'[bg][img]overlay=alpha=straight'
            ),
            '-frames:v', '1',
            '-q:v', '2',
            '-y',
            str(output_path)
        ]
        if self._run(alpha_cmd, output_path, "alpha-aware image"):
            return True

        logger.warning(f"FFmpeg alpha-aware method failed for: {image_path}")

        simple_cmd = [
            self.ffmpeg_path,
            '-i', str(image_path),
            '-vf', f'{self._scale_filter(resolution)}:flags=lanczos',
            '-frames:v', '1',
            '-q:v', '2',
            '-y',
            str(output_path)
        ]
        return self._run(simple_cmd, output_path, "simple image")

    def get_video_duration(self, video_path: Path) -> Optional[float]:
        """Get video duration in seconds, or None when it cannot be probed."""
        if not self.ffprobe_path:
            return None

        cmd = [
            self.ffprobe_path,
            '-v', 'quiet',
            '-print_format', 'json',
            '-show_format',
            str(video_path)
        ]

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=10)
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.error(f"Error getting video duration for {video_path}: {e}")
            return None

        if result.returncode != 0:
            return None

        try:
            data = json.loads(result.stdout)
            return float(data['format']['duration'])
        except (ValueError, KeyError, TypeError):
            return None

    def _scale_filter(self, resolution: int) -> str:
        # Fit inside a square box without upscaling
        return (f"scale='min({resolution},iw)':'min({resolution},ih)'"
                f":force_original_aspect_ratio=decrease")

    def _run(self, cmd, output_path: Path, label: str) -> bool:
        # Remove any existing empty file
        if output_path.exists() and output_path.stat().st_size == 0:
            output_path.unlink()

        logger.debug(f"FFmpeg {label} command: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            logger.debug(f"FFmpeg {label} timed out after {self.timeout}s")
            return False
        except OSError as e:
            logger.debug(f"FFmpeg {label} could not start: {e}")
            return False

        if result.returncode == 0 and output_path.exists() and output_path.stat().st_size > 0:
            return True

        logger.debug(f"FFmpeg {label} failed: {result.stderr}")
        return False
