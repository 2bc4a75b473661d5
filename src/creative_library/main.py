#!/usr/bin/env python3
"""
Command line entry point for Creative Library maintenance tasks.
"""

import argparse
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Tuple

from PySide6.QtCore import QCoreApplication

from .config.manager import ConfigurationManager
from .core.library import AssetLibrary


def setup_logging(config_manager: Optional[ConfigurationManager] = None) -> None:
    """Setup application logging from the ``logging`` configuration section."""
    if config_manager is not None:
        logging_config = config_manager.get('logging', {})
    else:
        from .config.defaults import DEFAULT_CONFIG
        logging_config = DEFAULT_CONFIG.get('logging', {})

    log_level = logging_config.get('level', 'INFO')
    file_enabled = logging_config.get('file_enabled', True)
    console_enabled = logging_config.get('console_enabled', True)

    handlers: List[logging.Handler] = []
    if console_enabled:
        handlers.append(logging.StreamHandler(sys.stderr))
    if file_enabled:
        log_path = Path(logging_config.get('file_path', 'creative_library.log'))
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            str(log_path),
            maxBytes=logging_config.get('max_file_size_mb', 10) * 1024 * 1024,
            backupCount=logging_config.get('backup_count', 5),
            encoding='utf-8',
        ))

    # Fallback to console if no handlers enabled
    if not handlers:
        handlers.append(logging.StreamHandler(sys.stderr))

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=log_format,
        handlers=handlers,
        force=True,
    )


def find_config_files() -> Tuple[Optional[str], Optional[str]]:
    """Locate the general and user configuration files."""
    from .config.defaults import DEFAULT_CONFIG

    default_user_config = DEFAULT_CONFIG.get('config_files', {}).get('user_config_file')

    search_dirs = [
        Path.cwd(),
        Path(default_user_config).parent if default_user_config else None,
        Path("/etc/creative_library") if os.name != 'nt' else None,  # System-wide (Linux/macOS)
    ]
    search_dirs = [d for d in search_dirs if d is not None and d.exists()]

    general_config = None
    user_config = None

    for search_dir in search_dirs:
        general_path = search_dir / "global_config.json"
        if general_path.exists() and general_config is None:
            general_config = str(general_path)

        user_path = search_dir / "user_config.json"
        if user_path.exists() and user_config is None:
            user_config = str(user_path)

    if user_config is None and default_user_config:
        user_config = default_user_config

    return general_config, user_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="creative-library", description="Creative Library maintenance")
    parser.add_argument("--config", help="Path to a general configuration file")
    parser.add_argument("--user-config", help="Path to the user configuration file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("info", help="Print database, asset and thumbnail statistics as JSON")

    backup_parser = subparsers.add_parser("backup", help="Write a copy of the database")
    backup_parser.add_argument("--output", help="Backup file path (defaults next to the database)")

    subparsers.add_parser("vacuum", help="Compact the database")

    subparsers.add_parser("thumbnails", help="Generate thumbnails for assets that have none")

    return parser


def handle_info(library: AssetLibrary, args: argparse.Namespace) -> int:
    print(json.dumps(library.get_library_info(), indent=2, default=str))
    return 0


def handle_backup(library: AssetLibrary, args: argparse.Namespace) -> int:
    backup_path = library.database_manager.create_backup(args.output)
    print(f"Backup created: {backup_path}")
    return 0


def handle_vacuum(library: AssetLibrary, args: argparse.Namespace) -> int:
    library.database_manager.vacuum_database()
    print("Database vacuumed")
    return 0


def handle_thumbnails(library: AssetLibrary, args: argparse.Namespace) -> int:
    queued = library.regenerate_missing_thumbnails()
    library.thumbnail_manager.wait_for_done()

    missing = len(library.repository.get_assets_without_thumbnail())
    print(f"Queued {queued} thumbnails, {missing} still missing")
    return 1 if missing else 0


HANDLERS = {
    "info": handle_info,
    "backup": handle_backup,
    "vacuum": handle_vacuum,
    "thumbnails": handle_thumbnails,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    logger = logging.getLogger(__name__)

    general_config, user_config = find_config_files()
    general_config = args.config or general_config
    user_config = args.user_config or user_config

    qt_app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    qt_app.setApplicationName("Creative Library")

    library = None
    try:
        config_manager = ConfigurationManager()
        config_manager.load_configuration(
            general_config_path=general_config,
            user_config_path=user_config,
        )
        setup_logging(config_manager)
        logger.info(f"Configuration files: general={general_config}, user={user_config}")

        library = AssetLibrary(config_manager)
        library.initialize()

        return HANDLERS[args.command](library, args)

    except Exception as e:
        logger.error(f"creative-library {args.command} failed: {e}", exc_info=True)
        return 1

    finally:
        if library is not None:
            library.shutdown()


if __name__ == "__main__":
    sys.exit(main())
