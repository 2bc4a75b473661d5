"""
Bulk metadata editing for Creative Library.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

from sqlalchemy.exc import SQLAlchemyError

from ..database.connection import DatabaseManager, database_retry
from ..database.models import Asset
from .errors import ValidationError
from .fields import coerce_metadata, is_valid_asset_id


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BulkItemError:
    """One id that could not be updated."""
    id: Any
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'error': self.error}


@dataclass
class BulkUpdateResult:
    """Outcome of a bulk update. Some ids may have failed while others committed."""
    updated_count: int = 0
    errors: List[BulkItemError] = field(default_factory=list)

    @property
    def partial_failure(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'updated_count': self.updated_count,
            'errors': [error.to_dict() for error in self.errors],
        }


class BulkMutationExecutor:
    """Applies the same metadata change to many assets, committing each row on its own."""

    def __init__(self, database_manager: DatabaseManager):
        self.database_manager = database_manager

    def bulk_update_assets(self, ids: Iterable[Any], fields: Mapping[Any, Any]) -> BulkUpdateResult:
        """
        Write ``fields`` to every asset in ``ids``.

        Each id is its own transaction. An id that matches no row or whose write
        fails is reported in ``errors`` and the remaining ids still run.

        Raises:
            ValidationError: ``ids`` is empty or ``fields`` has no editable key
        """
        ids = list(ids) if ids is not None else []
        if not ids:
            raise ValidationError("ids must not be empty")

        values = {f.value: value for f, value in coerce_metadata(fields).items()}

        result = BulkUpdateResult()
        seen = set()

        for asset_id in ids:
            if not is_valid_asset_id(asset_id):
                result.errors.append(BulkItemError(asset_id, "invalid id"))
                continue
            # Repeated ids are applied and counted once
            if asset_id in seen:
                continue
            seen.add(asset_id)

            try:
                updated = self._update_one(asset_id, values)
            except (SQLAlchemyError, RuntimeError, OverflowError) as e:
                logger.error(f"Bulk update failed for asset {asset_id}: {e}")
                result.errors.append(BulkItemError(asset_id, str(e)))
                continue

            if updated:
                result.updated_count += 1
            else:
                result.errors.append(BulkItemError(asset_id, "not found"))

        if result.partial_failure:
            logger.warning(
                f"Bulk update of {sorted(values)} finished with {result.updated_count} updated "
                f"and {len(result.errors)} failed"
            )
        else:
            logger.info(f"Bulk update of {sorted(values)} applied to {result.updated_count} assets")

        return result

    @database_retry(max_retries=5, base_delay=0.1)
    def _update_one(self, asset_id: int, values: Dict[str, Any]) -> bool:
        with self.database_manager.get_session() as session:
            rowcount = (
                session.query(Asset)
                .filter(Asset.id == asset_id)
                .update(values, synchronize_session=False)
            )
        return rowcount > 0
