"""
Value types shared by the Creative Library engine.
"""

import logging
from dataclasses import dataclass, asdict, fields as dataclass_fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from ..config.schemas import SORTABLE_FIELDS, SORT_ORDERS
from .errors import ValidationError


logger = logging.getLogger(__name__)


class MetadataField(Enum):
    """Business metadata columns that callers are allowed to change."""
    YEAR = "year"
    ADVERTISER = "advertiser"
    NICHE = "niche"
    SHARES = "shares"

    @classmethod
    def lookup(cls, key: Union[str, "MetadataField"]) -> Optional["MetadataField"]:
        if isinstance(key, cls):
            return key
        try:
            return cls(key)
        except ValueError:
            return None


INTEGER_FIELDS = {MetadataField.YEAR, MetadataField.SHARES}

# SQLite INTEGER is a signed 64-bit value
MIN_ASSET_ID = -2 ** 63
MAX_ASSET_ID = 2 ** 63 - 1


def is_valid_asset_id(value: Any) -> bool:
    """True for an int (not bool) the database can store as a row id."""
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return MIN_ASSET_ID <= value <= MAX_ASSET_ID


def _coerce_value(field: MetadataField, value: Any) -> Any:
    if value is None:
        return None

    if field in INTEGER_FIELDS:
        if isinstance(value, bool):
            raise ValidationError(f"{field.value} must be an integer, got {value!r}")
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{field.value} must be an integer, got {value!r}")
        if field is MetadataField.SHARES and number < 0:
            raise ValidationError("shares cannot be negative")
        return number

    text_value = str(value).strip()
    return text_value or None


def coerce_metadata(values: Mapping[Any, Any], allow_empty: bool = False) -> Dict[MetadataField, Any]:
    """
    Reduce a caller-supplied mapping to the closed set of metadata fields.

    Unknown keys are dropped with a warning. Values are converted to their
    column types.

    Raises:
        ValidationError: If no key is recognised (unless ``allow_empty``) or a
            value cannot be converted
    """
    if not isinstance(values, Mapping):
        raise ValidationError("fields must be a mapping of field name to value")

    coerced: Dict[MetadataField, Any] = {}
    dropped = []

    for key, value in values.items():
        field = MetadataField.lookup(key)
        if field is None:
            dropped.append(key)
            continue
        coerced[field] = _coerce_value(field, value)

    if dropped:
        logger.warning(f"Ignoring non-editable fields: {dropped}")

    if not coerced and not allow_empty:
        raise ValidationError(
            f"No editable fields supplied; expected any of {[f.value for f in MetadataField]}"
        )

    return coerced


@dataclass(frozen=True)
class AssetRecord:
    """Detached snapshot of one asset row."""
    id: int
    path: str
    mime_type: str
    size: int
    created_at: Optional[datetime]
    year: Optional[int]
    advertiser: Optional[str]
    niche: Optional[str]
    shares: Optional[int]
    master_id: Optional[int]
    version_no: int
    thumbnail_path: Optional[str] = None

    @property
    def is_master(self) -> bool:
        return self.master_id is None

    @classmethod
    def from_model(cls, asset) -> "AssetRecord":
        return cls(
            id=asset.id,
            path=asset.path,
            mime_type=asset.mime_type,
            size=asset.size,
            created_at=asset.created_at,
            year=asset.year,
            advertiser=asset.advertiser,
            niche=asset.niche,
            shares=asset.shares,
            master_id=asset.master_id,
            version_no=asset.version_no,
            thumbnail_path=asset.thumbnail_path,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.created_at is not None:
            data['created_at'] = self.created_at.isoformat()
        return data


@dataclass
class AssetFilters:
    """Listing filters; every criterion is optional."""
    year: Optional[int] = None
    advertiser: Optional[str] = None
    niche: Optional[str] = None
    shares_min: Optional[int] = None
    shares_max: Optional[int] = None
    search: Optional[str] = None
    masters_only: bool = False
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None

    def __post_init__(self):
        if self.sort_by is not None and self.sort_by not in SORTABLE_FIELDS:
            raise ValidationError(f"sort_by must be one of: {SORTABLE_FIELDS}")
        if self.sort_order is not None and self.sort_order not in SORT_ORDERS:
            raise ValidationError(f"sort_order must be one of: {SORT_ORDERS}")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "AssetFilters":
        if not data:
            return cls()

        known = {f.name for f in dataclass_fields(cls)}
        unknown = [key for key in data if key not in known]
        if unknown:
            raise ValidationError(f"Unknown filter keys: {unknown}")

        return cls(**data)
