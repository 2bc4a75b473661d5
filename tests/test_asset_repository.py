"""
Tests for the asset repository.
"""

import logging
import pytest

from creative_library.core.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from creative_library.core.fields import AssetFilters, MetadataField
from creative_library.database.models import Asset


class TestCreateAsset:

    def test_creates_master(self, repository):
        record = repository.create_asset({
            "path": "vault/spot.mp4",
            "mime_type": "Video/MP4",
            "size": 2048,
            "year": 2023,
            "advertiser": "Acme",
        })

        assert record.id is not None
        assert record.is_master
        assert record.version_no == 1
        assert record.mime_type == "video/mp4"
        assert record.shares == 0
        assert record.niche is None
        assert record.thumbnail_path is None
        assert record.created_at is not None

    def test_duplicate_path_conflicts(self, repository, make_asset):
        make_asset(path="vault/same.jpg")

        with pytest.raises(ConflictError) as exc_info:
            make_asset(path="vault/same.jpg")

        assert exc_info.value.path == "vault/same.jpg"

    @pytest.mark.parametrize("payload", [
        {"mime_type": "image/jpeg", "size": 1},
        {"path": "a.jpg", "mime_type": "jpeg", "size": 1},
        {"path": "a.jpg", "mime_type": "image/jpeg", "size": -1},
        {"path": "a.jpg", "mime_type": "image/jpeg", "size": True},
        {"path": "a.jpg", "mime_type": "image/jpeg", "size": 1, "shares": -5},
    ])
    def test_rejects_invalid_payload(self, repository, payload):
        with pytest.raises(ValidationError):
            repository.create_asset(payload)

    def test_ignores_group_fields_in_payload(self, repository, make_asset):
        master = make_asset()
        record = make_asset(master_id=master.id, version_no=7)

        assert record.master_id is None
        assert record.version_no == 1

    def test_to_dict_is_serialisable(self, make_asset):
        data = make_asset(year=2020).to_dict()

        assert data["year"] == 2020
        assert isinstance(data["created_at"], str)


class TestGetAssets:

    @pytest.fixture
    def catalogue(self, make_asset):
        return [
            make_asset(year=2022, advertiser="Acme Corp", niche="Travel", shares=5),
            make_asset(year=2023, advertiser="Globex", niche="Finance", shares=50),
            make_asset(year=2023, advertiser="Acme Corp", niche="Finance", shares=500),
        ]

    def test_get_asset_not_found(self, repository):
        with pytest.raises(NotFoundError):
            repository.get_asset(12345)

    def test_default_sort_is_newest_first(self, repository, catalogue):
        ids = [record.id for record in repository.get_assets()]
        assert ids == sorted((record.id for record in catalogue), reverse=True)

    def test_filter_by_year_and_advertiser(self, repository, catalogue):
        results = repository.get_assets({"year": 2023, "advertiser": "Acme Corp"})
        assert [record.id for record in results] == [catalogue[2].id]

    def test_filter_by_shares_range(self, repository, catalogue):
        results = repository.get_assets(AssetFilters(shares_min=10, shares_max=100))
        assert [record.id for record in results] == [catalogue[1].id]

    def test_sort_by_shares_ascending(self, repository, catalogue):
        results = repository.get_assets({"sort_by": "shares", "sort_order": "asc"})
        assert [record.shares for record in results] == [5, 50, 500]

    def test_masters_only(self, repository, version_manager, catalogue):
        version_manager.create_version(catalogue[0].id)

        assert len(repository.get_assets()) == 4
        assert len(repository.get_assets({"masters_only": True})) == 3

    def test_search_matches_prefix(self, repository, catalogue):
        results = repository.get_assets({"search": "acm"})
        assert {record.id for record in results} == {catalogue[0].id, catalogue[2].id}

    def test_search_requires_every_token(self, repository, catalogue):
        results = repository.get_assets({"search": "acme finance"})
        assert [record.id for record in results] == [catalogue[2].id]

    def test_search_without_fulltext_index(self, repository, database_manager, catalogue):
        database_manager.fulltext_enabled = False

        results = repository.get_assets({"search": "globex"})
        assert [record.id for record in results] == [catalogue[1].id]

    def test_search_follows_updates(self, repository, database_manager, catalogue):
        if not database_manager.fulltext_enabled:
            pytest.skip("SQLite build without FTS5")

        repository.update_asset(catalogue[1].id, {"advertiser": "Initech"})

        assert repository.get_assets({"search": "globex"}) == []
        assert [r.id for r in repository.get_assets({"search": "initech"})] == [catalogue[1].id]

    def test_rejects_unknown_sort_and_filters(self, repository):
        with pytest.raises(ValidationError):
            repository.get_assets({"sort_by": "path"})
        with pytest.raises(ValidationError):
            repository.get_assets({"sort_order": "sideways"})
        with pytest.raises(ValidationError):
            repository.get_assets({"colour": "red"})


class TestUpdateAsset:

    def test_updates_metadata(self, repository, make_asset):
        asset = make_asset()

        record = repository.update_asset(asset.id, {
            "year": "2024",
            MetadataField.ADVERTISER: "  Umbrella  ",
            "shares": 3,
        })

        assert record.year == 2024
        assert record.advertiser == "Umbrella"
        assert record.shares == 3
        assert repository.get_asset(asset.id).year == 2024

    def test_blank_text_clears_field(self, repository, make_asset):
        asset = make_asset(niche="Travel")

        assert repository.update_asset(asset.id, {"niche": "   "}).niche is None

    def test_unknown_keys_are_dropped(self, repository, make_asset, caplog):
        asset = make_asset()

        with caplog.at_level(logging.WARNING):
            record = repository.update_asset(asset.id, {"path": "elsewhere.jpg", "year": 2021})

        assert record.path == asset.path
        assert record.year == 2021
        assert "Ignoring non-editable fields" in caplog.text

    def test_no_recognised_keys(self, repository, make_asset):
        asset = make_asset()

        with pytest.raises(ValidationError):
            repository.update_asset(asset.id, {"master_id": 1})

    @pytest.mark.parametrize("fields", [{"year": "soon"}, {"shares": -1}, {"shares": False}])
    def test_rejects_bad_values(self, repository, make_asset, fields):
        asset = make_asset()

        with pytest.raises(ValidationError):
            repository.update_asset(asset.id, fields)

    def test_not_found(self, repository):
        with pytest.raises(NotFoundError):
            repository.update_asset(999, {"year": 2020})


class TestDeleteAndThumbnail:

    def test_delete_standalone(self, repository, make_asset):
        asset = make_asset()

        repository.delete_asset(asset.id)

        with pytest.raises(NotFoundError):
            repository.get_asset(asset.id)

    def test_delete_master_with_versions_is_refused(self, repository, version_manager, make_asset):
        master = make_asset()
        version_manager.create_version(master.id)

        with pytest.raises(InvalidStateError):
            repository.delete_asset(master.id)

    def test_set_thumbnail_path(self, repository, make_asset):
        asset = make_asset()

        assert repository.set_thumbnail_path(asset.id, "/cache/1.jpg") is True
        assert repository.get_asset(asset.id).thumbnail_path == "/cache/1.jpg"
        assert repository.set_thumbnail_path(999, "/cache/999.jpg") is False

    def test_assets_without_thumbnail(self, repository, make_asset):
        first = make_asset()
        second = make_asset()
        repository.set_thumbnail_path(first.id, "/cache/a.jpg")

        assert [record.id for record in repository.get_assets_without_thumbnail()] == [second.id]


class TestResolveGroupRoot:

    def test_master_resolves_to_itself(self, repository, database_manager, make_asset):
        master = make_asset()

        with database_manager.get_session() as session:
            assert repository.resolve_group_root(session, master.id).id == master.id

    def test_version_resolves_to_master(self, repository, version_manager, database_manager, make_asset):
        master = make_asset()
        created = version_manager.create_version(master.id)

        with database_manager.get_session() as session:
            assert repository.resolve_group_root(session, created.id).id == master.id

    def test_chained_versions_are_rejected(self, repository, database_manager, make_asset):
        master = make_asset()
        with database_manager.get_session() as session:
            middle = Asset(path="middle.jpg", mime_type="image/jpeg", size=1, master_id=master.id, version_no=2)
            session.add(middle)
            session.flush()
            leaf = Asset(path="leaf.jpg", mime_type="image/jpeg", size=1, master_id=middle.id, version_no=3)
            session.add(leaf)
            session.flush()
            leaf_id = leaf.id

        with pytest.raises(InvalidStateError):
            with database_manager.get_session() as session:
                repository.resolve_group_root(session, leaf_id)

    def test_missing_id(self, repository, database_manager):
        with pytest.raises(NotFoundError):
            with database_manager.get_session() as session:
                repository.resolve_group_root(session, 404)
