"""Tests for the YAML configuration loader and engine settings."""

from pathlib import Path

import pytest

from vfrplan.core.config import ConfigError, ConfigLoader, EngineSettings

CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


class TestConfigLoader:
    """Test suite for ConfigLoader."""

    def test_dot_notation_get(self) -> None:
        """Test nested values are reachable with dotted keys."""
        config = ConfigLoader({"view": {"min_zoom": 0.25}})

        assert config.get("view.min_zoom") == 0.25
        assert config.get("view.max_zoom", 2.0) == 2.0
        assert config.get("missing.key") is None

    def test_set_creates_sections(self) -> None:
        """Test set() creates intermediate sections."""
        config = ConfigLoader()
        config.set("search.min_query_chars", 3)

        assert config.get_section("search") == {"min_query_chars": 3}

    def test_get_section_errors(self) -> None:
        """Test get_section rejects missing keys and scalars."""
        config = ConfigLoader({"view": {"min_zoom": 0.25}})

        with pytest.raises(ConfigError, match="not found"):
            config.get_section("index")
        with pytest.raises(ConfigError, match="not a section"):
            config.get_section("view.min_zoom")

    def test_merge_overrides_nested(self) -> None:
        """Test merge() overrides leaf values and keeps siblings."""
        base = ConfigLoader({"view": {"min_zoom": 0.125, "max_zoom": 1.0}})
        base.merge(ConfigLoader({"view": {"max_zoom": 4.0}}))

        assert base.to_dict() == {"view": {"min_zoom": 0.125, "max_zoom": 4.0}}

    def test_save_and_load(self, tmp_path: Path) -> None:
        """Test a saved configuration loads back unchanged."""
        path = tmp_path / "nested" / "engine.yaml"
        ConfigLoader({"index": {"cell_size_deg": 0.5}}).save(path)

        assert ConfigLoader.load(path).get("index.cell_size_deg") == 0.5

    def test_load_missing_file(self, tmp_path: Path) -> None:
        """Test loading a missing file raises ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            ConfigLoader.load(tmp_path / "absent.yaml")

    def test_load_non_mapping(self, tmp_path: Path) -> None:
        """Test a YAML list at the root is rejected."""
        path = tmp_path / "engine.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ConfigError, match="mapping"):
            ConfigLoader.load(path)

    def test_load_empty_file(self, tmp_path: Path) -> None:
        """Test an empty file loads as an empty configuration."""
        path = tmp_path / "engine.yaml"
        path.write_text("")

        assert ConfigLoader.load(path).to_dict() == {}


class TestEngineSettings:
    """Test suite for EngineSettings."""

    def test_defaults(self) -> None:
        """Test default values."""
        settings = EngineSettings()

        assert settings.min_zoom == 0.125
        assert settings.max_zoom == 1.0
        assert settings.fill_viewport is False
        assert settings.cell_size_deg == 0.1
        assert settings.include_private_heliports is False
        assert settings.nasr_encoding == "utf-8-sig"

    def test_from_config(self) -> None:
        """Test values are read from their sections."""
        config = ConfigLoader(
            {
                "view": {"min_zoom": 0.5, "max_zoom": 2, "fill_viewport": True},
                "index": {"cell_size_deg": 0.25},
                "search": {"include_private_heliports": True, "min_query_chars": 2},
                "nasr": {"encoding": "latin-1"},
            }
        )

        settings = EngineSettings.from_config(config)

        assert settings == EngineSettings(0.5, 2.0, True, 0.25, True, 2, "latin-1")

    def test_missing_keys_use_defaults(self) -> None:
        """Test an empty config yields the defaults."""
        assert EngineSettings.from_config(ConfigLoader()) == EngineSettings()

    @pytest.mark.parametrize(
        "values",
        [
            {"min_zoom": 0.0},
            {"max_zoom": -1.0},
            {"cell_size_deg": float("nan")},
            {"cell_size_deg": 120.0},
            {"min_zoom": 2.0, "max_zoom": 1.0},
            {"min_query_chars": -1},
        ],
    )
    def test_invalid_values(self, values: dict) -> None:
        """Test out-of-range settings raise ConfigError."""
        with pytest.raises(ConfigError):
            EngineSettings(**values)

    def test_non_numeric_value(self) -> None:
        """Test a non-numeric zoom raises ConfigError."""
        with pytest.raises(ConfigError, match="Invalid engine setting"):
            EngineSettings.from_config(ConfigLoader({"view": {"min_zoom": "tiny"}}))

    def test_shipped_config_matches_defaults(self) -> None:
        """Test config/engine.yaml agrees with the built-in defaults."""
        assert EngineSettings.load(CONFIG_DIR / "engine.yaml") == EngineSettings()

    def test_load_without_path(self) -> None:
        """Test load(None) returns defaults."""
        assert EngineSettings.load() == EngineSettings()
