"""
Tests for configuration management.
"""

import json
import logging
import pytest

from creative_library.config.manager import ConfigurationManager
from creative_library.config.schemas import ConfigValidationError

from conftest import write_general_config


class TestConfigurationManager:
    """Test configuration manager functionality."""

    def test_load_default_configuration(self, tmp_path):
        """Defaults survive when the general config only relocates paths."""
        config_manager = ConfigurationManager()
        config = config_manager.load_configuration(
            general_config_path=str(write_general_config(tmp_path))
        )

        assert config is not None
        assert config_manager.get('version') == '1.0.0'
        assert config_manager.get('thumbnails.size') == 256
        assert config_manager.get('ffmpeg.executable_path') == 'ffmpeg'
        assert config_manager.get('imagemagick.executable_path') == 'magick'
        assert config_manager.get('library.default_sort_by') == 'created_at'
        assert (tmp_path / "vault").is_dir()
        assert (tmp_path / "thumbnails").is_dir()

    def test_cascading_configuration(self, tmp_path):
        """User settings override general settings, which override defaults."""
        general_path = write_general_config(tmp_path, {
            "thumbnails": {"size": 128},
            "ffmpeg": {"executable_path": "/usr/bin/ffmpeg"},
        })

        user_path = tmp_path / "user.json"
        with open(user_path, 'w') as f:
            json.dump({"user_id": "test_user", "thumbnails": {"size": 512}}, f)

        config_manager = ConfigurationManager()
        config_manager.load_configuration(
            general_config_path=str(general_path),
            user_config_path=str(user_path),
        )

        assert config_manager.get('thumbnails.size') == 512  # From user
        assert config_manager.get('ffmpeg.executable_path') == '/usr/bin/ffmpeg'  # From general
        assert config_manager.get('ffmpeg.timeout') == 30  # From defaults

    def test_get_with_dot_notation(self, config_manager):
        assert config_manager.get('database.max_backups') == 7
        assert config_manager.get('nonexistent.key') is None
        assert config_manager.get('nonexistent.key', 'default') == 'default'

    def test_set_configuration_value(self, config_manager):
        config_manager.set('test.key', 'test_value', persist=False)
        assert config_manager.get('test.key') == 'test_value'

        config_manager.set('nested.deep.key', 42, persist=False)
        assert config_manager.get('nested.deep.key') == 42

    def test_set_persists_user_settings(self, tmp_path):
        user_path = tmp_path / "user" / "user_config.json"
        config_manager = ConfigurationManager()
        config_manager.load_configuration(
            general_config_path=str(write_general_config(tmp_path)),
            user_config_path=str(user_path),
        )

        config_manager.set('library.default_sort_by', 'shares')

        with open(user_path, 'r', encoding='utf-8') as f:
            saved = json.load(f)
        assert saved['library']['default_sort_by'] == 'shares'
        assert 'database' not in saved

    def test_invalid_general_configuration(self, tmp_path):
        invalid_path = tmp_path / "invalid.json"
        invalid_path.write_text("{ invalid json }")

        config_manager = ConfigurationManager()

        with pytest.raises(ConfigValidationError):
            config_manager.load_configuration(general_config_path=str(invalid_path))

    def test_invalid_user_configuration_is_skipped(self, tmp_path, caplog):
        user_path = tmp_path / "user.json"
        user_path.write_text("[1, 2, 3]")

        config_manager = ConfigurationManager()
        with caplog.at_level(logging.WARNING):
            config_manager.load_configuration(
                general_config_path=str(write_general_config(tmp_path)),
                user_config_path=str(user_path),
            )

        assert config_manager.get('thumbnails.size') == 256
        assert "Failed to load user config" in caplog.text

    def test_schema_rejects_out_of_range_values(self, tmp_path):
        general_path = write_general_config(tmp_path, {"thumbnails": {"size": 8}})

        with pytest.raises(ConfigValidationError, match="thumbnail size"):
            ConfigurationManager().load_configuration(general_config_path=str(general_path))

    def test_schema_rejects_unknown_sort_field(self, tmp_path):
        general_path = write_general_config(tmp_path, {"library": {"default_sort_by": "path"}})

        with pytest.raises(ConfigValidationError, match="default_sort_by"):
            ConfigurationManager().load_configuration(general_config_path=str(general_path))

    def test_reload_picks_up_file_changes(self, tmp_path):
        general_path = write_general_config(tmp_path, {"thumbnails": {"size": 128}})
        config_manager = ConfigurationManager()
        config_manager.load_configuration(general_config_path=str(general_path))

        write_general_config(tmp_path, {"thumbnails": {"size": 512}})
        config_manager.reload_configuration()

        assert config_manager.get('thumbnails.size') == 512

    def test_reload_before_load_is_ignored(self):
        config_manager = ConfigurationManager()

        config_manager.reload_configuration()

        with pytest.raises(RuntimeError):
            config_manager.get('thumbnails.size')

    def test_config_info(self, tmp_path, config_manager):
        info = config_manager.get_config_info()

        assert info['loaded'] is True
        assert info['version'] == '1.0.0'
        assert info['config_paths'] == {'general': str(tmp_path / "general.json")}
        assert info['total_keys'] > 10

    def test_configuration_not_loaded_error(self):
        """Test error when accessing configuration before loading."""
        config_manager = ConfigurationManager()

        with pytest.raises(RuntimeError, match="Configuration not loaded"):
            config_manager.get('some.key')

        with pytest.raises(RuntimeError, match="Configuration not loaded"):
            config_manager.set('some.key', 'value')
