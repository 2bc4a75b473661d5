"""
Default configuration values for Creative Library.
"""

import os
from pathlib import Path

# Get platform-specific default paths
def get_default_paths():
    """Get platform-specific default paths."""
    home = Path.home()

    if os.name == 'nt':  # Windows
        local_data = Path(os.environ.get('LOCALAPPDATA', home / 'AppData' / 'Local'))
        base_dir = local_data / 'CreativeLibrary'
    else:  # Linux/macOS
        base_dir = home / '.creative_library'

    return {
        'base_dir': base_dir,
        'data_dir': base_dir / 'data',
        'cache_dir': base_dir / 'cache',
        'user_dir': base_dir / 'user',
    }

# Get default paths
_default_paths = get_default_paths()

DEFAULT_CONFIG = {
    "version": "1.0.0",
    "paths": {
        "data_directory": str(_default_paths['data_dir']),
        "vault_directory": str(_default_paths['data_dir'] / "vault"),
        "log_directory": str(_default_paths['user_dir']),
        "user_config_path": str(_default_paths['user_dir']),
    },
    "config_files": {
        "user_config_file": str(_default_paths['user_dir'] / "user_config.json"),

        # Whether to create config files automatically if they don't exist
        "auto_create": True,
        # Whether to create parent directories if they don't exist
        "create_directories": True,
        # File permissions (Unix only)
        "file_permissions": 0o644,
        "directory_permissions": 0o755,
    },
    "database": {
        "path": str(_default_paths['data_dir'] / "database" / "library.db"),
        "backup_enabled": True,
        "backup_interval_hours": 24,
        "max_backups": 7,
        "session_wait_timeout": 5.0,  # seconds to wait for the writer slot
    },
    "thumbnails": {
        "cache_directory": str(_default_paths['cache_dir'] / "thumbnails"),
        "size": 256,
        "max_cache_size_mb": 1024,  # 1GB cache limit
        "background_generation": True,
        "video_time_offset": 0.1,  # Grab the frame at 10% of the video duration
        "max_concurrent_workers": 4,
    },
    "ffmpeg": {
        "executable_path": "ffmpeg",
        "ffprobe_path": "ffprobe",
        "timeout": 30,
    },
    "imagemagick": {
        "executable_path": "magick",
        "timeout": 60,
    },
    "library": {
        "default_sort_by": "created_at",
        "default_sort_order": "desc",
    },
    "logging": {
        "level": "INFO", # "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"
        "file_enabled": True,
        "file_path": str(_default_paths['user_dir'] / 'creative_library.log'),
        "max_file_size_mb": 10,
        "backup_count": 5,
        "console_enabled": True,
    },
}
