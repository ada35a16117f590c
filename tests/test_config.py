# ============================================================================
# CONFIGURATION TESTS
# ============================================================================
# STATUS: Tests - Configuration defaults
# PURPOSE: Verify derived names, validation and environment loading
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Tests

Run with:
    pytest tests/test_config.py -v
"""

import dataclasses

import pytest

from core.config import DatabaseDefaults, RowIdentityConfig, get_defaults, reset_defaults


@pytest.fixture(autouse=True)
def _fresh_defaults():
    reset_defaults()
    yield
    reset_defaults()


class TestRowIdentityConfig:

    def test_defaults(self):
        config = RowIdentityConfig()
        assert config.identity_column == "__id__"
        assert config.revision_column == "__rev__"
        assert config.default_schema == "public"

    def test_derived_names(self):
        config = RowIdentityConfig(revision_column="version")
        assert config.sequence_name == "version_sequence"
        assert config.stamp_function_name == "version_update"
        assert config.trigger_name == "version_trigger"
        assert config.revision_output == "version'"
        assert config.identity_output == "__id__'"

    def test_frozen(self):
        config = RowIdentityConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.identity_column = "other"

    @pytest.mark.parametrize("field_name", ["identity_column", "revision_column", "default_schema"])
    def test_empty_names_rejected(self, field_name):
        with pytest.raises(ValueError):
            RowIdentityConfig(**{field_name: ""})

    def test_identical_columns_rejected(self):
        with pytest.raises(ValueError):
            RowIdentityConfig(identity_column="x", revision_column="x")


class TestEnvironment:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ROWIDENT_IDENTITY_COLUMN", "row_id")
        monkeypatch.setenv("ROWIDENT_REVISION_COLUMN", "row_rev")
        monkeypatch.setenv("ROWIDENT_DEFAULT_SCHEMA", "app")

        config = RowIdentityConfig.from_env()
        assert config == RowIdentityConfig("row_id", "row_rev", "app")

    def test_pool_sizes_from_env(self, monkeypatch):
        monkeypatch.setenv("ROWIDENT_POOL_MIN_SIZE", "1")
        monkeypatch.setenv("ROWIDENT_POOL_MAX_SIZE", "4")
        assert DatabaseDefaults.from_env() == DatabaseDefaults(min_size=1, max_size=4)

    def test_get_defaults_is_cached_until_reset(self, monkeypatch):
        first = get_defaults()
        assert get_defaults() is first

        monkeypatch.setenv("ROWIDENT_DEFAULT_SCHEMA", "app")
        assert get_defaults().identity.default_schema == "public"

        reset_defaults()
        assert get_defaults().identity.default_schema == "app"
