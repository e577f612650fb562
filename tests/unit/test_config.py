"""Tests for configuration loading."""

from pathlib import Path

import pytest

from hybridsearch.config.loader import _substitute_env_vars, get_default_config_path, load_config
from hybridsearch.config.schema import (
    AppConfig,
    EmbeddingProviderType,
    MergeStrategy,
    StorageConfig,
    StorageType,
)

CONFIG_TOML = """
docs_dir = "notes"

[embedding]
provider = "ollama"
model_name = "nomic-embed-text"

[storage]
store_type = "sqlite"
connection_string = "${INDEX_DIR:-/tmp}/index.db"

[hybrid]
vector_weight = 0.6
text_weight = 0.4

[profiles.server.storage]
store_type = "postgresql"
connection_string = "${PG_DSN}"
vector_dimension = 768

[profiles.server.hybrid]
strategy = "rrf"
"""


@pytest.fixture
def config_file(tmp_path) -> Path:
    path = tmp_path / "hybridsearch.toml"
    path.write_text(CONFIG_TOML, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path):
        config = load_config(tmp_path / "missing.toml")

        assert config.embedding.provider == EmbeddingProviderType.OPENAI
        assert config.storage.store_type == StorageType.SQLITE
        assert config.include == "**/*.md"

    def test_base_values(self, config_file, monkeypatch):
        monkeypatch.delenv("INDEX_DIR", raising=False)

        config = load_config(config_file)

        assert config.docs_dir == Path("notes")
        assert config.embedding.provider == EmbeddingProviderType.OLLAMA
        assert config.storage.connection_string == "/tmp/index.db"
        assert config.hybrid.vector_weight == 0.6
        assert config.hybrid.strategy == MergeStrategy.WEIGHTED

    def test_profile_overrides_sections(self, config_file, monkeypatch):
        monkeypatch.setenv("PG_DSN", "postgresql://search@db/index")

        config = load_config(config_file, profile="server")

        assert config.storage.store_type == StorageType.POSTGRESQL
        assert config.storage.connection_string == "postgresql://search@db/index"
        assert config.storage.vector_dimension == 768
        assert config.hybrid.strategy == MergeStrategy.RRF
        # Keys the profile does not mention are kept
        assert config.hybrid.text_weight == 0.4
        assert config.embedding.provider == EmbeddingProviderType.OLLAMA

    def test_unknown_profile_uses_base(self, config_file):
        config = load_config(config_file, profile="nope")

        assert config.storage.store_type == StorageType.SQLITE

    def test_environment_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv("HYBRIDSEARCH_DOCS_DIR", "/srv/docs")

        config = load_config(config_file)

        assert config.docs_dir == Path("/srv/docs")

    def test_env_file(self, tmp_path, monkeypatch):
        # Registers the variable with monkeypatch so the value loaded from .env is undone
        monkeypatch.setenv("HYBRIDSEARCH_INCLUDE", "placeholder")
        monkeypatch.delenv("HYBRIDSEARCH_INCLUDE")
        env_file = tmp_path / ".env"
        env_file.write_text("HYBRIDSEARCH_INCLUDE=**/*.txt\n", encoding="utf-8")

        config = load_config(tmp_path / "missing.toml", env_file=env_file)

        assert config.include == "**/*.txt"

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text('[hybrid]\nvector_weight = -1\n', encoding="utf-8")

        with pytest.raises(ValueError):
            load_config(path)


class TestSubstituteEnvVars:
    def test_nested_structures(self, monkeypatch):
        monkeypatch.setenv("API_KEY", "secret")

        data = {"a": ["${API_KEY}", 3], "b": {"c": "key=${API_KEY}"}}

        assert _substitute_env_vars(data) == {"a": ["secret", 3], "b": {"c": "key=secret"}}

    def test_default_value(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR", raising=False)

        assert _substitute_env_vars("${UNSET_VAR:-fallback}") == "fallback"

    def test_missing_variable_left_as_is(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR", raising=False)

        assert _substitute_env_vars("${UNSET_VAR}") == "${UNSET_VAR}"


class TestDefaults:
    def test_default_config_path_prefers_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "hybridsearch.toml").write_text("", encoding="utf-8")

        assert get_default_config_path() == tmp_path / "hybridsearch.toml"

    def test_storage_connection_string_expands_home(self):
        config = StorageConfig(connection_string="~/index.db")

        assert config.connection_string == str(Path.home()) + "/index.db"

    def test_docs_dir_expands_home(self):
        assert AppConfig(docs_dir="~/notes").docs_dir == Path.home() / "notes"
