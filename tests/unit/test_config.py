"""Unit tests for Settings and the YAML config loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from lorekeeper.config.loader import _deep_merge, load_config
from lorekeeper.config.settings import Settings


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.max_chunk_length == 3000
        assert settings.retry_max_attempts == 3
        assert settings.retry_base_delay == 2.0
        assert settings.merge_request_delay == 2.0
        assert settings.llm_provider == "http"

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_CHUNK_LENGTH", "1200")
        monkeypatch.setenv("LLM_MODEL", "local-model")

        settings = Settings(_env_file=None)

        assert settings.max_chunk_length == 1200
        assert settings.llm_model == "local-model"

    def test_available_providers_depend_on_key(self) -> None:
        assert Settings(_env_file=None, llm_api_key="").get_available_llm_providers() == []
        assert Settings(_env_file=None, llm_api_key="sk").get_available_llm_providers() == [
            "http",
            "openai",
        ]


class TestLoadConfig:
    def test_yaml_values_kept_and_settings_merged_on_top(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "app:\n  name: lorekeeper\n"
            "segmenter:\n  max_chunk_length: 999\n  sentence_terminators: '.!?'\n",
            encoding="utf-8",
        )
        settings = Settings(_env_file=None, max_chunk_length=1500, llm_api_key="sk")

        config = load_config(str(path), settings=settings)

        assert config["app"]["name"] == "lorekeeper"
        assert config["segmenter"]["sentence_terminators"] == ".!?"
        assert config["segmenter"]["max_chunk_length"] == 1500
        assert config["llm"]["available_providers"] == ["http", "openai"]
        assert config["storage"]["checkpoint_path"] == settings.checkpoint_path

    def test_missing_file_yields_settings_only(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"), settings=Settings(_env_file=None))

        assert config["segmenter"]["max_chunk_length"] == 3000
        assert "app" in config

    def test_repository_config_loads(self) -> None:
        root = Path(__file__).resolve().parents[2]
        config = load_config(str(root / "config" / "config.yaml"), settings=Settings(_env_file=None))

        assert config["importer"]["match_threshold"] == 0.92
        assert config["merge"]["conflict_annotation"] == "(multiple accounts)"


def test_deep_merge_nested() -> None:
    base = {"a": {"b": 1, "c": 2}, "d": 3}
    _deep_merge(base, {"a": {"c": 20, "e": 5}, "f": 6})
    assert base == {"a": {"b": 1, "c": 20, "e": 5}, "d": 3, "f": 6}
