"""
Asset repository for Creative Library.

Raw create/read/update/delete for asset rows plus the session-level helpers the
group manager builds its transactions from.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import func, or_, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config.manager import ConfigurationManager
from ..database.connection import DatabaseManager, database_retry
from ..database.migrations import FTS_TABLE
from ..database.models import Asset
from .errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from .fields import AssetFilters, AssetRecord, coerce_metadata, is_valid_asset_id


logger = logging.getLogger(__name__)


PROVENANCE_KEYS = ('path', 'mime_type', 'size')


class AssetRepository:
    """Owns asset rows and the single place group roots are resolved."""

    def __init__(self, database_manager: DatabaseManager,
                 config_manager: Optional[ConfigurationManager] = None):
        self.database_manager = database_manager
        self.config_manager = config_manager

        if config_manager is not None:
            self.default_sort_by = config_manager.get('library.default_sort_by', 'created_at')
            self.default_sort_order = config_manager.get('library.default_sort_order', 'desc')
        else:
            self.default_sort_by = 'created_at'
            self.default_sort_order = 'desc'

    # Session-level helpers. Callers own the session and its transaction.

    def get_model(self, session: Session, asset_id: int) -> Asset:
        """Load an asset row or raise NotFoundError."""
        if not is_valid_asset_id(asset_id):
            raise NotFoundError(asset_id)
        asset = session.get(Asset, asset_id)
        if asset is None:
            raise NotFoundError(asset_id)
        return asset

    def resolve_group_root(self, session: Session, asset_id: int) -> Asset:
        """
        Return the master of the group ``asset_id`` belongs to.

        A master resolves to itself and a version to the row its ``master_id``
        names. That row must itself be a master.
        """
        asset = self.get_model(session, asset_id)
        if asset.master_id is None:
            return asset

        root = session.get(Asset, asset.master_id)
        if root is None:
            raise NotFoundError(asset.master_id, f"Master {asset.master_id} of asset {asset_id} not found")
        if root.master_id is not None:
            raise InvalidStateError(
                f"Asset {asset_id} points at {root.id}, which is itself a version of {root.master_id}"
            )
        return root

    def max_version_no(self, session: Session, root_id: int, exclude_id: Optional[int] = None) -> int:
        """Highest version number in the group rooted at ``root_id``."""
        query = session.query(func.max(Asset.version_no)).filter(
            or_(Asset.id == root_id, Asset.master_id == root_id)
        )
        if exclude_id is not None:
            query = query.filter(Asset.id != exclude_id)
        return query.scalar() or 0

    def group_members(self, session: Session, root_id: int) -> List[Asset]:
        """Root first, then its versions with the highest version number first."""
        root = self.get_model(session, root_id)
        versions = (
            session.query(Asset)
            .filter(Asset.master_id == root_id)
            .order_by(Asset.version_no.desc(), Asset.id.desc())
            .all()
        )
        return [root] + versions

    def has_versions(self, session: Session, asset_id: int) -> bool:
        return session.query(Asset.id).filter(Asset.master_id == asset_id).first() is not None

    def path_exists(self, session: Session, path: str) -> bool:
        return session.query(Asset.id).filter(Asset.path == path).first() is not None

    def delete_in_session(self, session: Session, asset_id: int) -> None:
        """Delete one row; a master that still has versions is refused."""
        asset = self.get_model(session, asset_id)
        if self.has_versions(session, asset_id):
            raise InvalidStateError(f"Asset {asset_id} is the master of a group with live versions")
        session.delete(asset)

    # Public operations, one unit of work each

    @database_retry(max_retries=5, base_delay=0.1)
    def create_asset(self, payload: Mapping[str, Any]) -> AssetRecord:
        """
        Insert a new master asset.

        Args:
            payload: ``path``, ``mime_type`` and ``size`` plus any of the
                metadata fields ``year``, ``advertiser``, ``niche``, ``shares``

        Raises:
            ValidationError: Missing or malformed provenance fields
            ConflictError: ``path`` is already stored
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("Asset payload must be a mapping")

        path = payload.get('path')
        if not isinstance(path, str) or not path.strip():
            raise ValidationError("path is required")
        path = path.strip()

        mime_type = payload.get('mime_type')
        if not isinstance(mime_type, str) or '/' not in mime_type:
            raise ValidationError(f"mime_type must look like 'type/subtype', got {mime_type!r}")

        size = payload.get('size')
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            raise ValidationError(f"size must be a non-negative integer, got {size!r}")

        metadata = coerce_metadata(
            {k: v for k, v in payload.items() if k not in PROVENANCE_KEYS},
            allow_empty=True,
        )

        with self.database_manager.get_session() as session:
            if self.path_exists(session, path):
                raise ConflictError(path)

            asset = Asset(path=path, mime_type=mime_type, size=size, master_id=None, version_no=1)
            for field, value in metadata.items():
                setattr(asset, field.value, value)

            session.add(asset)
            try:
                session.flush()
            except IntegrityError:
                raise ConflictError(path)

            record = AssetRecord.from_model(asset)

        logger.info(f"Created asset {record.id} ({record.mime_type}) at {record.path}")
        return record

    @database_retry(max_retries=3, base_delay=0.05)
    def get_asset(self, asset_id: int) -> AssetRecord:
        with self.database_manager.get_session() as session:
            return AssetRecord.from_model(self.get_model(session, asset_id))

    @database_retry(max_retries=3, base_delay=0.05)
    def get_assets(self, filters: Union[AssetFilters, Mapping[str, Any], None] = None) -> List[AssetRecord]:
        """
        List assets matching ``filters``.

        Accepts an ``AssetFilters`` or a plain dict with the same keys. Sorting
        falls back to the configured library default.
        """
        if not isinstance(filters, AssetFilters):
            filters = AssetFilters.from_dict(filters)

        sort_by = filters.sort_by or self.default_sort_by
        sort_order = filters.sort_order or self.default_sort_order

        with self.database_manager.get_session() as session:
            query = session.query(Asset)

            if filters.year is not None:
                query = query.filter(Asset.year == filters.year)
            if filters.advertiser is not None:
                query = query.filter(Asset.advertiser == filters.advertiser)
            if filters.niche is not None:
                query = query.filter(Asset.niche == filters.niche)
            if filters.shares_min is not None:
                query = query.filter(Asset.shares >= filters.shares_min)
            if filters.shares_max is not None:
                query = query.filter(Asset.shares <= filters.shares_max)
            if filters.masters_only:
                query = query.filter(Asset.master_id.is_(None))
            if filters.search and filters.search.strip():
                query = self._apply_search(session, query, filters.search)

            sort_column = getattr(Asset, sort_by)
            if sort_order == 'asc':
                query = query.order_by(sort_column.asc(), Asset.id.asc())
            else:
                query = query.order_by(sort_column.desc(), Asset.id.desc())

            records = [AssetRecord.from_model(asset) for asset in query.all()]

        logger.debug(f"Listed {len(records)} assets (sort {sort_by} {sort_order})")
        return records

    def _apply_search(self, session: Session, query, search: str):
        tokens = search.split()

        if self.database_manager.fulltext_enabled:
            # Each token becomes a quoted prefix phrase; phrases are ANDed
            match = ' '.join('"{}"*'.format(token.replace('"', '""')) for token in tokens)
            ids = session.execute(
                text(f"SELECT rowid FROM {FTS_TABLE} WHERE {FTS_TABLE} MATCH :match"),
                {"match": match},
            ).scalars().all()
            return query.filter(Asset.id.in_(ids))

        for token in tokens:
            pattern = f"%{token}%"
            query = query.filter(or_(Asset.advertiser.ilike(pattern), Asset.niche.ilike(pattern)))
        return query

    @database_retry(max_retries=5, base_delay=0.1)
    def update_asset(self, asset_id: int, fields: Mapping[Any, Any]) -> AssetRecord:
        """
        Change metadata fields of one asset.

        Only ``year``, ``advertiser``, ``niche`` and ``shares`` can be written;
        other keys are dropped with a warning.
        """
        values = coerce_metadata(fields)

        with self.database_manager.get_session() as session:
            asset = self.get_model(session, asset_id)
            for field, value in values.items():
                setattr(asset, field.value, value)
            session.flush()
            record = AssetRecord.from_model(asset)

        logger.info(f"Updated asset {asset_id}: {sorted(f.value for f in values)}")
        return record

    @database_retry(max_retries=5, base_delay=0.1)
    def delete_asset(self, asset_id: int) -> None:
        with self.database_manager.get_session() as session:
            self.delete_in_session(session, asset_id)
        logger.info(f"Deleted asset {asset_id}")

    @database_retry(max_retries=5, base_delay=0.1)
    def set_thumbnail_path(self, asset_id: int, thumbnail_path: Optional[str]) -> bool:
        """Record the generated thumbnail. Returns False if the asset is gone."""
        if not is_valid_asset_id(asset_id):
            return False
        with self.database_manager.get_session() as session:
            asset = session.get(Asset, asset_id)
            if asset is None:
                return False
            asset.thumbnail_path = thumbnail_path
        return True

    @database_retry(max_retries=3, base_delay=0.05)
    def get_assets_without_thumbnail(self) -> List[AssetRecord]:
        with self.database_manager.get_session() as session:
            assets = (
                session.query(Asset)
                .filter(Asset.thumbnail_path.is_(None))
                .order_by(Asset.id)
                .all()
            )
            return [AssetRecord.from_model(asset) for asset in assets]

    @database_retry(max_retries=3, base_delay=0.05)
    def get_statistics(self) -> Dict[str, int]:
        with self.database_manager.get_session() as session:
            total = session.query(func.count(Asset.id)).scalar() or 0
            masters = session.query(func.count(Asset.id)).filter(Asset.master_id.is_(None)).scalar() or 0
            grouped = (
                session.query(func.count(func.distinct(Asset.master_id)))
                .filter(Asset.master_id.isnot(None))
                .scalar() or 0
            )
        return {
            'total_assets': total,
            'masters': masters,
            'versions': total - masters,
            'groups_with_versions': grouped,
        }
