"""
Version group management for Creative Library.

A group is a master row plus every row whose ``master_id`` names it. Groups are
kept one level deep: a ``master_id`` always points at a row whose own
``master_id`` is NULL. Every method here runs as one transaction and holds the
manager lock, so two callers can never compute the same next version number.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database.connection import DatabaseManager, database_retry
from ..database.models import Asset
from ..utils.file_utils import FileUtils
from .asset_repository import AssetRepository
from .errors import ConflictError, InvalidStateError
from .fields import AssetRecord


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VersionCreated:
    """Identity of a freshly created version."""
    id: int
    version_no: int

    def to_dict(self):
        return {'id': self.id, 'version_no': self.version_no}


class VersionGroupManager:
    """Creates, promotes, detaches and attaches group members."""

    def __init__(self, database_manager: DatabaseManager, repository: AssetRepository,
                 path_factory: Optional[Callable[[str, int], str]] = None):
        self.database_manager = database_manager
        self.repository = repository
        self.path_factory = path_factory or FileUtils.version_path
        self._lock = threading.Lock()

    @database_retry(max_retries=5, base_delay=0.1)
    def create_version(self, asset_id: int) -> VersionCreated:
        """
        Add a new version to the group ``asset_id`` belongs to.

        ``asset_id`` may name the master or any of its versions. The new row
        copies the master's provenance and business metadata, gets a freshly
        derived path next to the master's and the next free version number.

        Raises:
            NotFoundError: ``asset_id`` does not exist
            ConflictError: The derived path is already stored
        """
        with self._lock, self.database_manager.get_session() as session:
            root = self.repository.resolve_group_root(session, asset_id)
            next_version_no = self.repository.max_version_no(session, root.id) + 1
            path = self.path_factory(root.path, next_version_no)

            if self.repository.path_exists(session, path):
                raise ConflictError(path, f"Version path already exists: {path}")

            version = Asset(
                path=path,
                mime_type=root.mime_type,
                size=root.size,
                year=root.year,
                advertiser=root.advertiser,
                niche=root.niche,
                shares=root.shares,
                master_id=root.id,
                version_no=next_version_no,
                thumbnail_path=None,
            )
            session.add(version)
            try:
                session.flush()
            except IntegrityError:
                raise ConflictError(path, f"Version path already exists: {path}")

            root_id = root.id
            result = VersionCreated(id=version.id, version_no=next_version_no)

        logger.info(f"Created version {result.id} (v{result.version_no}) of master {root_id}")
        return result

    @database_retry(max_retries=5, base_delay=0.1)
    def promote_version(self, version_id: int) -> None:
        """
        Make ``version_id`` the master of its group.

        The old master becomes a version with the next free number and every
        other member is relinked to the new master. Membership is unchanged.

        Raises:
            NotFoundError: ``version_id`` does not exist
            InvalidStateError: ``version_id`` is not a version
        """
        with self._lock, self.database_manager.get_session() as session:
            target = self.repository.get_model(session, version_id)
            if target.master_id is None:
                if self.repository.has_versions(session, target.id):
                    raise InvalidStateError(f"Asset {version_id} is already the master of its group")
                raise InvalidStateError(f"Asset {version_id} is not part of a group")

            old_master_id = self._promote(session, target)

        logger.info(f"Promoted asset {version_id} to master (previous master {old_master_id})")

    def _promote(self, session: Session, target: Asset) -> int:
        old_master = self.repository.resolve_group_root(session, target.id)
        old_master_id = old_master.id
        new_version_no = self.repository.max_version_no(session, old_master_id, exclude_id=target.id) + 1

        old_master.master_id = target.id
        old_master.version_no = new_version_no
        target.master_id = None
        target.version_no = 1
        session.flush()

        relinked = (
            session.query(Asset)
            .filter(
                Asset.master_id == old_master_id,
                Asset.id != target.id,
                Asset.id != old_master_id,
            )
            .update({Asset.master_id: target.id}, synchronize_session=False)
        )
        logger.debug(f"Relinked {relinked} sibling(s) from {old_master_id} to {target.id}")
        return old_master_id

    @database_retry(max_retries=5, base_delay=0.1)
    def remove_from_group(self, version_id: int) -> None:
        """Detach one version into its own singleton group. No other row changes."""
        with self._lock, self.database_manager.get_session() as session:
            target = self.repository.get_model(session, version_id)
            if target.master_id is None:
                raise InvalidStateError(f"Asset {version_id} is not a version of any group")

            old_master_id = target.master_id
            target.master_id = None
            target.version_no = 1

        logger.info(f"Removed asset {version_id} from the group of master {old_master_id}")

    @database_retry(max_retries=5, base_delay=0.1)
    def add_to_group(self, asset_id: int, master_id: int) -> AssetRecord:
        """
        Attach a standalone asset to the group ``master_id`` belongs to.

        The asset must be a master without versions of its own; it joins with
        the next free version number.
        """
        with self._lock, self.database_manager.get_session() as session:
            asset = self.repository.get_model(session, asset_id)
            root = self.repository.resolve_group_root(session, master_id)

            if asset.master_id is not None:
                raise InvalidStateError(f"Asset {asset_id} is already a version of {asset.master_id}")
            if root.id == asset.id:
                raise InvalidStateError(f"Asset {asset_id} cannot join its own group")
            if self.repository.has_versions(session, asset.id):
                raise InvalidStateError(f"Asset {asset_id} has versions of its own")

            asset.master_id = root.id
            asset.version_no = self.repository.max_version_no(session, root.id) + 1
            session.flush()
            record = AssetRecord.from_model(asset)

        logger.info(f"Added asset {asset_id} to group {record.master_id} as v{record.version_no}")
        return record

    @database_retry(max_retries=3, base_delay=0.05)
    def get_asset_versions(self, asset_id: int) -> List[AssetRecord]:
        """Master of the group first, then its versions by descending version number."""
        with self.database_manager.get_session() as session:
            root = self.repository.resolve_group_root(session, asset_id)
            members = self.repository.group_members(session, root.id)
            return [AssetRecord.from_model(member) for member in members]

    @database_retry(max_retries=5, base_delay=0.1)
    def delete_asset(self, asset_id: int) -> None:
        """
        Delete one asset without orphaning its group.

        A master that still has versions hands the group to its highest-numbered
        version first, in the same transaction.
        """
        with self._lock, self.database_manager.get_session() as session:
            asset = self.repository.get_model(session, asset_id)
            heir_id = None
            if asset.master_id is None:
                heir = (
                    session.query(Asset)
                    .filter(Asset.master_id == asset.id)
                    .order_by(Asset.version_no.desc(), Asset.id.desc())
                    .first()
                )
                if heir is not None:
                    heir_id = heir.id
                    self._promote(session, heir)

            self.repository.delete_in_session(session, asset_id)

        if heir_id is not None:
            logger.info(f"Deleted master {asset_id}; asset {heir_id} now leads the group")
        else:
            logger.info(f"Deleted asset {asset_id}")
