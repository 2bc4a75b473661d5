"""
Tests for the library facade.
"""

from pathlib import Path

import pytest

from creative_library.config.manager import ConfigurationManager
from creative_library.core.errors import NotFoundError
from creative_library.core.library import AssetLibrary

from conftest import FakeGenerator, FakePdfRenderer, write_general_config


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def library_config(tmp_path):
    manager = ConfigurationManager()
    general = write_general_config(tmp_path, {"thumbnails": {"background_generation": False}})
    manager.load_configuration(general_config_path=str(general))
    return manager


@pytest.fixture
def vault(tmp_path):
    directory = tmp_path / "vault"
    directory.mkdir(parents=True, exist_ok=True)
    for name in ("hero.jpg", "spot.mp4", "deck.pdf"):
        (directory / name).write_bytes(b"content")
    return directory


@pytest.fixture
def library(qt_app, library_config, generator, vault):
    library = AssetLibrary(library_config, thumbnail_generator=generator, pdf_renderer=FakePdfRenderer())
    library.initialize()
    yield library
    library.shutdown()


@pytest.fixture
def changes(library):
    seen = []
    library.assets_changed.connect(lambda ids: seen.append(sorted(ids)))
    return seen


def _create(library, name="hero.jpg", mime_type="image/jpeg", **fields):
    payload = {"path": name, "mime_type": mime_type, "size": 7}
    payload.update(fields)
    return library.create_asset(payload)


class TestLifecycle:

    def test_operations_require_initialize(self, qt_app, library_config):
        library = AssetLibrary(library_config, thumbnail_generator=FakeGenerator())

        with pytest.raises(RuntimeError, match="not initialized"):
            library.get_assets()

    def test_initialize_is_idempotent(self, library):
        database_manager = library.database_manager

        library.initialize()

        assert library.is_initialized
        assert library.database_manager is database_manager

    def test_shutdown_closes(self, library):
        library.shutdown()

        assert not library.is_initialized
        with pytest.raises(RuntimeError):
            library.get_asset(1)

    def test_library_info(self, library):
        _create(library)

        info = library.get_library_info()

        assert set(info) == {"database", "assets", "thumbnails"}
        assert info["database"]["table_counts"]["assets"] == 1
        assert info["assets"]["total_assets"] == 1
        assert info["thumbnails"]["thumbnail_count"] == 1


class TestAssets:

    def test_create_generates_thumbnail_from_vault(self, library, generator, vault, changes):
        record = _create(library)

        assert changes == [[record.id]]
        assert generator.calls == [("image", vault / "hero.jpg", 256)]
        stored = library.get_asset(record.id).thumbnail_path
        assert stored == str(library.thumbnail_manager.get_thumbnail_file_path(record.id))
        assert Path(stored).exists()

    def test_update_emits_change(self, library, changes):
        record = _create(library)

        updated = library.update_asset(record.id, {"niche": "Travel"})

        assert updated.niche == "Travel"
        assert changes[-1] == [record.id]

    def test_delete_removes_thumbnail(self, library, changes):
        record = _create(library)
        thumbnail = Path(library.get_asset(record.id).thumbnail_path)

        library.delete_asset(record.id)

        assert not thumbnail.exists()
        assert changes[-1] == [record.id]
        with pytest.raises(NotFoundError):
            library.get_asset(record.id)

    def test_delete_master_keeps_group(self, library):
        master = _create(library)
        version = library.create_version(master.id)

        library.delete_asset(master.id)

        assert library.get_asset(version.id).is_master


class TestVersions:

    def test_new_version_uses_master_file_for_thumbnail(self, library, generator, vault):
        master = _create(library, "spot.mp4", "video/mp4")

        created = library.create_version(master.id)

        assert created.version_no == 2
        assert generator.calls[-1][0] == "frame"
        assert generator.calls[-1][1] == vault / "spot.mp4"
        assert library.get_asset(created.id).thumbnail_path is not None

    def test_promote_reports_whole_group(self, library, changes):
        master = _create(library)
        version = library.create_version(master.id)

        library.promote_version(version.id)

        assert changes[-1] == sorted([master.id, version.id])
        assert [record.id for record in library.get_asset_versions(master.id)] == [version.id, master.id]

    def test_remove_and_add_back(self, library):
        master = _create(library)
        version = library.create_version(master.id)

        library.remove_from_group(version.id)
        assert library.get_asset(version.id).is_master

        record = library.add_to_group(version.id, master.id)
        assert (record.master_id, record.version_no) == (master.id, 2)


class TestBulkAndMaintenance:

    def test_bulk_emits_only_updated_ids(self, library, changes):
        first = _create(library, "hero.jpg")
        second = _create(library, "deck.pdf", "application/pdf")

        result = library.bulk_update_assets([first.id, 999, second.id], {"advertiser": "Acme"})

        assert result.updated_count == 2
        assert changes[-1] == sorted([first.id, second.id])

    def test_regenerate_missing_thumbnails(self, library, generator, vault):
        master = _create(library)
        version = library.create_version(master.id)
        assert library.thumbnail_manager.clear_cache() == 2
        generator.calls.clear()

        assert library.regenerate_missing_thumbnails() == 2

        assert [call[1] for call in generator.calls] == [vault / "hero.jpg", vault / "hero.jpg"]
        assert library.repository.get_assets_without_thumbnail() == []
