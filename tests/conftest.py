import json
from pathlib import Path

import pytest
from PySide6.QtCore import QCoreApplication

from creative_library.config.manager import ConfigurationManager
from creative_library.core.asset_repository import AssetRepository
from creative_library.core.bulk_editor import BulkMutationExecutor
from creative_library.core.version_manager import VersionGroupManager
from creative_library.database.connection import DatabaseManager
from creative_library.database.models import Asset


def write_general_config(directory: Path, overrides: dict = None) -> Path:
    """Write a general config that keeps every path inside ``directory``."""
    config = {
        "paths": {
            "data_directory": str(directory / "data"),
            "vault_directory": str(directory / "vault"),
            "log_directory": str(directory / "logs"),
            "user_config_path": str(directory / "user"),
        },
        "config_files": {"auto_create": False},
        "database": {"path": str(directory / "data" / "library.db"), "backup_enabled": False},
        "thumbnails": {"cache_directory": str(directory / "thumbnails")},
        "logging": {"file_enabled": False},
    }
    for section, values in (overrides or {}).items():
        config.setdefault(section, {}).update(values)

    config_path = directory / "general.json"
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config, f)
    return config_path


@pytest.fixture(scope="session")
def qt_app():
    """Qt core application shared by tests that touch QObject or QThreadPool."""
    return QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture
def config_manager(tmp_path):
    manager = ConfigurationManager()
    manager.load_configuration(general_config_path=str(write_general_config(tmp_path)))
    return manager


@pytest.fixture
def database_manager(tmp_path):
    """File-backed database under tmp_path."""
    manager = DatabaseManager(str(tmp_path / "db" / "library.db"))
    manager.initialize_database()
    yield manager
    manager.close()


@pytest.fixture
def repository(database_manager):
    return AssetRepository(database_manager)


@pytest.fixture
def version_manager(database_manager, repository):
    return VersionGroupManager(database_manager, repository)


@pytest.fixture
def bulk_executor(database_manager):
    return BulkMutationExecutor(database_manager)


@pytest.fixture
def make_asset(repository):
    """Factory creating master assets with unique paths."""
    counter = {"n": 0}

    def _make_asset(**fields):
        counter["n"] += 1
        payload = {
            "path": f"vault/asset_{counter['n']}.jpg",
            "mime_type": "image/jpeg",
            "size": 1024,
        }
        payload.update(fields)
        return repository.create_asset(payload)

    return _make_asset


def assert_groups_flat(database_manager):
    """Every master_id must name a row that is itself a master."""
    with database_manager.get_session() as session:
        rows = {asset.id: asset.master_id for asset in session.query(Asset).all()}

    for asset_id, master_id in rows.items():
        if master_id is not None:
            assert master_id in rows, f"asset {asset_id} points at missing {master_id}"
            assert rows[master_id] is None, f"asset {asset_id} points at version {master_id}"


class FakeGenerator:
    """Stands in for FFmpeg: records calls and writes a small JPEG-ish file."""

    def __init__(self, duration=10.0, succeed=True, explode=False):
        self.duration = duration
        self.succeed = succeed
        self.explode = explode
        self.calls = []

    def _write(self, output_path):
        if self.explode:
            raise OSError("converter crashed")
        if self.succeed:
            Path(output_path).write_bytes(b"\xff\xd8thumb")
        return self.succeed

    def extract_image_thumbnail(self, image_path, output_path, resolution):
        self.calls.append(("image", Path(image_path), resolution))
        return self._write(output_path)

    def extract_frame(self, video_path, output_path, timestamp, resolution):
        self.calls.append(("frame", Path(video_path), timestamp, resolution))
        return self._write(output_path)

    def get_video_duration(self, video_path):
        return self.duration


class FakePdfRenderer:

    def __init__(self):
        self.calls = []

    def render_first_page(self, pdf_path, output_path, resolution):
        self.calls.append((Path(pdf_path), resolution))
        Path(output_path).write_bytes(b"\xff\xd8page")
        return True
