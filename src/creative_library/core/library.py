"""
Application facade for Creative Library.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from PySide6.QtCore import QObject, Signal

from ..config.manager import ConfigurationManager
from ..database.connection import DatabaseManager, init_database
from ..utils.file_utils import FileUtils
from .asset_repository import AssetRepository
from .bulk_editor import BulkMutationExecutor, BulkUpdateResult
from .fields import AssetFilters, AssetRecord
from .thumbnail_manager import ThumbnailManager
from .version_manager import VersionCreated, VersionGroupManager


logger = logging.getLogger(__name__)


class AssetLibrary(QObject):
    """Entry point used by the UI: every library operation goes through here."""

    # Signals
    library_initialized = Signal()
    library_closing = Signal()
    assets_changed = Signal(list)  # ids of assets whose rows changed

    def __init__(self, config_manager: ConfigurationManager, thumbnail_generator=None, pdf_renderer=None):
        super().__init__()

        self.config_manager = config_manager
        self._thumbnail_generator = thumbnail_generator
        self._pdf_renderer = pdf_renderer

        self.database_manager: Optional[DatabaseManager] = None
        self.repository: Optional[AssetRepository] = None
        self.version_manager: Optional[VersionGroupManager] = None
        self.bulk_executor: Optional[BulkMutationExecutor] = None
        self.thumbnail_manager: Optional[ThumbnailManager] = None

        self.vault_directory = Path(self.config_manager.get('paths.vault_directory'))
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Open the database and build the engine components."""
        if self._initialized:
            return

        logger.info("Initializing Creative Library...")

        self._initialize_database()
        self._initialize_managers()

        self._initialized = True
        logger.info("Library initialization completed successfully")
        self.library_initialized.emit()

    def _initialize_database(self) -> None:
        self.database_manager = init_database(
            self.config_manager.get('database.path'),
            session_wait_timeout=self.config_manager.get('database.session_wait_timeout', 5.0),
        )

        # Enable backup if configured
        if self.config_manager.get('database.backup_enabled', True):
            backup_interval = self.config_manager.get('database.backup_interval_hours', 24)
            max_backups = self.config_manager.get('database.max_backups', 7)
            self.database_manager.setup_auto_backup(backup_interval, max_backups)

    def _initialize_managers(self) -> None:
        self.repository = AssetRepository(self.database_manager, self.config_manager)
        self.version_manager = VersionGroupManager(self.database_manager, self.repository)
        self.bulk_executor = BulkMutationExecutor(self.database_manager)
        self.thumbnail_manager = ThumbnailManager(
            self.config_manager,
            repository=self.repository,
            generator=self._thumbnail_generator,
            pdf_renderer=self._pdf_renderer,
        )

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("Library not initialized. Call initialize() first.")

    def resolve_file(self, stored_path: str) -> Path:
        """Location of an asset's content in the vault."""
        return FileUtils.resolve_vault_path(self.vault_directory, stored_path)

    # Asset operations

    def create_asset(self, payload: Mapping[str, Any]) -> AssetRecord:
        self._require_initialized()
        record = self.repository.create_asset(payload)
        self.assets_changed.emit([record.id])
        self.thumbnail_manager.queue_thumbnail_generation(
            record.id, self.resolve_file(record.path), record.mime_type
        )
        return record

    def get_asset(self, asset_id: int) -> AssetRecord:
        self._require_initialized()
        return self.repository.get_asset(asset_id)

    def get_assets(self, filters=None) -> List[AssetRecord]:
        self._require_initialized()
        return self.repository.get_assets(filters)

    def update_asset(self, asset_id: int, fields: Mapping[Any, Any]) -> AssetRecord:
        self._require_initialized()
        record = self.repository.update_asset(asset_id, fields)
        self.assets_changed.emit([record.id])
        return record

    def delete_asset(self, asset_id: int) -> None:
        self._require_initialized()
        self.version_manager.delete_asset(asset_id)

        thumbnail = self.thumbnail_manager.get_thumbnail_file_path(asset_id)
        if thumbnail.exists():
            try:
                thumbnail.unlink()
            except OSError as e:
                logger.warning(f"Could not remove thumbnail of deleted asset {asset_id}: {e}")

        self.assets_changed.emit([asset_id])

    # Version group operations

    def get_asset_versions(self, master_id: int) -> List[AssetRecord]:
        self._require_initialized()
        return self.version_manager.get_asset_versions(master_id)

    def create_version(self, master_id: int) -> VersionCreated:
        self._require_initialized()
        created = self.version_manager.create_version(master_id)

        # A new version has no content of its own yet, so it shows the master's file
        version = self.repository.get_asset(created.id)
        root = self.repository.get_asset(version.master_id)
        self.assets_changed.emit([created.id])
        self.thumbnail_manager.queue_thumbnail_generation(
            created.id, self.resolve_file(root.path), root.mime_type
        )
        return created

    def promote_version(self, version_id: int) -> None:
        self._require_initialized()
        self.version_manager.promote_version(version_id)
        members = self.version_manager.get_asset_versions(version_id)
        self.assets_changed.emit([member.id for member in members])

    def remove_from_group(self, version_id: int) -> None:
        self._require_initialized()
        self.version_manager.remove_from_group(version_id)
        self.assets_changed.emit([version_id])

    def add_to_group(self, asset_id: int, master_id: int) -> AssetRecord:
        self._require_initialized()
        record = self.version_manager.add_to_group(asset_id, master_id)
        self.assets_changed.emit([record.id])
        return record

    # Bulk operations

    def bulk_update_assets(self, ids: Iterable[Any], fields: Mapping[Any, Any]) -> BulkUpdateResult:
        self._require_initialized()
        ids = list(ids) if ids is not None else []
        result = self.bulk_executor.bulk_update_assets(ids, fields)

        failed = {error.id for error in result.errors if isinstance(error.id, int)}
        changed = [asset_id for asset_id in dict.fromkeys(ids)
                   if isinstance(asset_id, int) and asset_id not in failed]
        if changed:
            self.assets_changed.emit(changed)
        return result

    # Maintenance

    def regenerate_missing_thumbnails(self) -> int:
        """Queue thumbnails for every asset that has none; returns the count queued."""
        self._require_initialized()
        queued = 0
        for record in self.repository.get_assets_without_thumbnail():
            if record.master_id is not None:
                source = self.repository.get_asset(record.master_id)
            else:
                source = record
            self.thumbnail_manager.queue_thumbnail_generation(
                record.id, self.resolve_file(source.path), source.mime_type
            )
            queued += 1
        return queued

    def get_library_info(self) -> Dict[str, Any]:
        self._require_initialized()
        return {
            'database': self.database_manager.get_database_info(),
            'assets': self.repository.get_statistics(),
            'thumbnails': self.thumbnail_manager.get_cache_info(),
        }

    def shutdown(self) -> None:
        """Stop background work and close the database."""
        if not self._initialized:
            return

        logger.info("Shutting down Creative Library...")
        self.library_closing.emit()

        self.thumbnail_manager.shutdown()
        self.database_manager.close()

        self._initialized = False
        logger.info("Library shutdown completed")
