"""
Exceptions raised by the Creative Library engine.
"""


class AssetLibraryError(Exception):
    """Base class for all engine errors."""
    pass


class NotFoundError(AssetLibraryError):
    """Referenced asset id does not exist."""

    def __init__(self, asset_id, message: str = None):
        self.asset_id = asset_id
        super().__init__(message or f"Asset {asset_id} not found")


class InvalidStateError(AssetLibraryError):
    """Operation is not valid for the asset's current role in its group."""
    pass


class ConflictError(AssetLibraryError):
    """Uniqueness violation, such as a derived version path that already exists."""

    def __init__(self, path: str, message: str = None):
        self.path = path
        super().__init__(message or f"Path already exists: {path}")


class ValidationError(AssetLibraryError, ValueError):
    """Structurally invalid input."""
    pass
