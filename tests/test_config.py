"""Tests for SearchConfig defaults, validation and environment loading."""

import pytest

from mnemosearch.config import DEFAULT_EMBEDDING_DIM, DEFAULT_EMBEDDING_MODEL, SearchConfig
from mnemosearch.errors import ConfigurationError


class TestSearchConfig:
    def test_defaults(self):
        config = SearchConfig()
        assert config.embedding_model == DEFAULT_EMBEDDING_MODEL
        assert config.embedding_dim == DEFAULT_EMBEDDING_DIM == 384
        assert config.similarity_floor == 0.3
        assert config.rrf_k == 60
        assert config.backfill_limit == 100
        assert config.backfill_batch_size == 50
        assert config.backfill_cron == "0 */6 * * *"

    def test_frozen(self):
        config = SearchConfig()
        with pytest.raises(Exception):
            config.rrf_k = 1

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"embedding_dim": 0},
            {"similarity_floor": 1.5},
            {"rrf_k": -1},
            {"candidate_pool": 0},
            {"backfill_limit": 0},
            {"backfill_batch_size": -5},
            {"backfill_cron": "every six hours"},
            {"queue_maxsize": -1},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ConfigurationError):
            SearchConfig(**kwargs)


class TestFromEnv:
    def test_empty_environment_gives_defaults(self):
        assert SearchConfig.from_env({}) == SearchConfig()

    def test_overrides(self):
        config = SearchConfig.from_env(
            {
                "MNEMOSEARCH_DB_PATH": "/tmp/x.sqlite",
                "MNEMOSEARCH_EMBEDDING_DIM": "768",
                "MNEMOSEARCH_SIMILARITY_FLOOR": "0.5",
                "MNEMOSEARCH_RRF_K": "10",
                "MNEMOSEARCH_BACKFILL_CRON": "*/15 * * * *",
                "MNEMOSEARCH_DEVICE": "cuda",
            }
        )
        assert config.db_path == "/tmp/x.sqlite"
        assert config.embedding_dim == 768
        assert config.similarity_floor == 0.5
        assert config.rrf_k == 10
        assert config.backfill_cron == "*/15 * * * *"
        assert config.device == "cuda"

    def test_blank_values_ignored(self):
        assert SearchConfig.from_env({"MNEMOSEARCH_RRF_K": ""}).rrf_k == 60

    def test_unparseable_value(self):
        with pytest.raises(ConfigurationError, match="MNEMOSEARCH_RRF_K"):
            SearchConfig.from_env({"MNEMOSEARCH_RRF_K": "sixty"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("MNEMOSEARCH_CANDIDATE_POOL", "7")
        assert SearchConfig.from_env().candidate_pool == 7
