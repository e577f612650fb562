"""Unit tests for the storage and embedding provider factories."""

import builtins
from unittest.mock import patch

import pytest

from hybridsearch.config.schema import EmbeddingConfig, StorageConfig
from hybridsearch.providers import ProviderError, create_embedding_provider
from hybridsearch.providers.gemini import GeminiEmbeddingProvider
from hybridsearch.providers.ollama import OllamaEmbeddingProvider
from hybridsearch.providers.openai import OpenAIEmbeddingProvider
from hybridsearch.providers.siliconflow import SiliconFlowEmbeddingProvider
from hybridsearch.storage import StorageError, create_storage
from hybridsearch.storage.memory import InMemoryStorage
from hybridsearch.storage.sqlite import SQLiteStorage


def _block_import(name: str):
    real_import = builtins.__import__

    def fake_import(module, *args, **kwargs):
        if module == name or module.startswith(name + "."):
            raise ImportError(f"No module named '{name}'")
        return real_import(module, *args, **kwargs)

    return fake_import


class TestCreateStorage:
    def test_memory(self):
        assert isinstance(create_storage(StorageConfig(store_type="memory")), InMemoryStorage)

    def test_sqlite(self, tmp_path):
        storage = create_storage(
            StorageConfig(store_type="sqlite", connection_string=str(tmp_path / "db.sqlite"))
        )
        assert isinstance(storage, SQLiteStorage)

    def test_postgres_without_asyncpg(self):
        config = StorageConfig(store_type="postgresql", connection_string="postgresql://localhost/db")

        with patch("builtins.__import__", side_effect=_block_import("asyncpg")):
            with pytest.raises(StorageError, match="asyncpg"):
                create_storage(config)

    def test_postgres_without_pgvector(self):
        config = StorageConfig(store_type="postgresql", connection_string="postgresql://localhost/db")

        with patch("builtins.__import__", side_effect=_block_import("pgvector")):
            with pytest.raises(StorageError, match="pgvector"):
                create_storage(config)

    def test_postgres(self):
        from hybridsearch.storage.postgres import PostgreSQLStorage

        config = StorageConfig(store_type="postgresql", connection_string="postgresql://localhost/db")

        assert isinstance(create_storage(config), PostgreSQLStorage)

    def test_unknown_type(self):
        config = StorageConfig.model_construct(store_type="cassandra")

        with pytest.raises(ValueError, match="cassandra"):
            create_storage(config)


class TestCreateEmbeddingProvider:
    def test_openai(self):
        provider = create_embedding_provider(EmbeddingConfig(provider="openai", api_key="sk-test"))
        assert isinstance(provider, OpenAIEmbeddingProvider)

    def test_siliconflow(self):
        provider = create_embedding_provider(
            EmbeddingConfig(provider="siliconflow", model_name="BAAI/bge-large-zh", api_key="sk-test")
        )
        assert isinstance(provider, SiliconFlowEmbeddingProvider)
        assert provider.get_dimension() == 1024

    def test_ollama(self):
        provider = create_embedding_provider(
            EmbeddingConfig(provider="ollama", model_name="nomic-embed-text")
        )
        assert isinstance(provider, OllamaEmbeddingProvider)

    def test_gemini(self):
        provider = create_embedding_provider(
            EmbeddingConfig(provider="gemini", model_name="text-embedding-004", api_key="g-key")
        )
        assert isinstance(provider, GeminiEmbeddingProvider)

    def test_local_without_sentence_transformers(self):
        config = EmbeddingConfig(provider="local", model_name="all-MiniLM-L6-v2")

        with patch("builtins.__import__", side_effect=_block_import("sentence_transformers")):
            with pytest.raises(ProviderError, match="sentence-transformers"):
                create_embedding_provider(config)

    def test_unknown_type(self):
        config = EmbeddingConfig.model_construct(provider="cohere", model_name="x")

        with pytest.raises(ValueError, match="cohere"):
            create_embedding_provider(config)
