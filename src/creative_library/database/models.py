"""
SQLAlchemy database models for Creative Library.
"""

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Index, CheckConstraint
)
from sqlalchemy.orm import declarative_base, relationship, validates
from sqlalchemy.sql import func


Base = declarative_base()


CUSTOM_FIELD_TYPES = ['text', 'number', 'date', 'boolean']


class Asset(Base):
    """Imported media asset.

    ``master_id`` is NULL for a master (group root). For a version it names the
    master directly; a version never points at another version.
    """

    __tablename__ = 'assets'

    id = Column(Integer, primary_key=True)
    path = Column(Text, nullable=False, unique=True)

    # Provenance, fixed at import
    mime_type = Column(String(255), nullable=False)
    size = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    # Business metadata
    year = Column(Integer, index=True)
    advertiser = Column(Text, index=True)
    niche = Column(Text, index=True)
    shares = Column(Integer, default=0)

    # Version grouping
    master_id = Column(Integer, ForeignKey('assets.id'), nullable=True, index=True)
    version_no = Column(Integer, nullable=False, default=1)

    # Written later by the thumbnail pipeline
    thumbnail_path = Column(Text)

    # Relationships
    custom_values = relationship("AssetCustomValue", back_populates="asset", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_assets_master_version', 'master_id', 'version_no'),
        CheckConstraint('version_no >= 1', name='ck_assets_version_no_positive'),
    )

    def __repr__(self) -> str:
        return f"<Asset(id={self.id}, master_id={self.master_id}, version_no={self.version_no})>"

    @validates('path')
    def validate_path(self, key: str, path: str) -> str:
        if not path or not path.strip():
            raise ValueError("Asset path cannot be empty")
        return path.strip()

    @validates('mime_type')
    def validate_mime_type(self, key: str, mime_type: str) -> str:
        if not mime_type or '/' not in mime_type:
            raise ValueError(f"Invalid MIME type: {mime_type!r}")
        return mime_type.strip().lower()

    @validates('version_no')
    def validate_version_no(self, key: str, version_no: int) -> int:
        if version_no is None or version_no < 1:
            raise ValueError("version_no must be a positive integer")
        return version_no


class CustomField(Base):
    """User-defined metadata field."""

    __tablename__ = 'custom_fields'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)
    type = Column(String(20), nullable=False)

    values = relationship("AssetCustomValue", back_populates="field", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<CustomField(id={self.id}, name='{self.name}', type='{self.type}')>"

    @validates('name')
    def validate_name(self, key: str, name: str) -> str:
        if not name or not name.strip():
            raise ValueError("Custom field name cannot be empty")
        return name.strip()

    @validates('type')
    def validate_type(self, key: str, field_type: str) -> str:
        if field_type not in CUSTOM_FIELD_TYPES:
            raise ValueError(f"Custom field type must be one of: {CUSTOM_FIELD_TYPES}")
        return field_type


class AssetCustomValue(Base):
    """Value of a custom field for one asset."""

    __tablename__ = 'asset_custom_values'

    asset_id = Column(Integer, ForeignKey('assets.id', ondelete='CASCADE'), primary_key=True)
    field_id = Column(Integer, ForeignKey('custom_fields.id', ondelete='CASCADE'), primary_key=True)
    value = Column(Text)

    asset = relationship("Asset", back_populates="custom_values")
    field = relationship("CustomField", back_populates="values")

    def __repr__(self) -> str:
        return f"<AssetCustomValue(asset_id={self.asset_id}, field_id={self.field_id})>"


# Create indexes for better query performance
def create_additional_indexes(engine) -> None:
    """Create additional database indexes for listing queries."""
    from sqlalchemy import text

    with engine.connect() as conn:
        conn.execute(text("""
            CREATE INDEX IF NOT EXISTS idx_assets_created_at ON assets (created_at)
        """))
        conn.execute(text("""
            CREATE INDEX IF NOT EXISTS idx_assets_shares ON assets (shares)
        """))
        conn.commit()
