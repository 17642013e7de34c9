"""Unit tests for request models, the status state machine and config loading."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from designvault.config.loader import (
    build_classification_options,
    build_escalation_policy,
    build_telemetry_options,
    build_upload_options,
    load_config,
)
from designvault.config.settings import Settings
from designvault.models.asset import AssetCategory, ProcessingStatus
from designvault.models.options import EscalationPolicy
from designvault.models.search import AssetFilter, SearchRequest
from tests.conftest import BASE_TIME


def _settings(**overrides) -> Settings:
    defaults = {
        "_env_file": None,
        "anthropic_api_key": "",
        "openai_api_key": "",
        "ollama_base_url": "",
    }
    defaults.update(overrides)
    return Settings(**defaults)


# ======================================================================
# SearchRequest
# ======================================================================


class TestSearchRequest:
    def test_defaults(self) -> None:
        request = SearchRequest(query="sofa")
        assert request.page == 1
        assert request.limit == 20
        assert request.offset == 0

    def test_offset(self) -> None:
        assert SearchRequest(query="sofa", page=3, limit=25).offset == 50

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"query": ""},
            {"query": "   "},
            {"query": "sofa", "page": 0},
            {"query": "sofa", "limit": 0},
            {"query": "sofa", "limit": 101},
            {"query": "sofa", "categories": ["spaceships"]},
        ],
    )
    def test_invalid_requests(self, kwargs: dict) -> None:
        with pytest.raises(ValidationError):
            SearchRequest(**kwargs)

    def test_reversed_date_range_rejected(self) -> None:
        with pytest.raises(ValidationError, match="date_from"):
            SearchRequest(query="sofa", date_from=BASE_TIME, date_to=BASE_TIME - timedelta(days=1))

    def test_equal_dates_allowed(self) -> None:
        assert SearchRequest(query="sofa", date_from=BASE_TIME, date_to=BASE_TIME).date_to == BASE_TIME

    def test_filter_snapshot(self) -> None:
        request = SearchRequest(
            query="sofa", site_ids=["site-north"], categories=["furniture"], date_from=BASE_TIME
        )
        snapshot = request.filter_snapshot()
        assert snapshot["categories"] == ["furniture"]
        assert snapshot["date_from"] == BASE_TIME.isoformat()
        assert snapshot["mime_types"] is None

    def test_request_is_frozen(self) -> None:
        request = SearchRequest(query="sofa")
        with pytest.raises(ValidationError):
            request.page = 2  # type: ignore[misc]

    def test_asset_filter_needs_a_site(self) -> None:
        with pytest.raises(ValidationError):
            AssetFilter(site_ids=[])


# ======================================================================
# Enums and the status state machine
# ======================================================================


class TestEnums:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("Furniture", AssetCategory.FURNITURE), (" lighting ", AssetCategory.LIGHTING), ("chairs", None)],
    )
    def test_category_parse(self, raw: str, expected: AssetCategory | None) -> None:
        assert AssetCategory.parse(raw) == expected

    @pytest.mark.parametrize(
        ("source", "target", "allowed"),
        [
            (ProcessingStatus.PENDING, ProcessingStatus.PROCESSING, True),
            (ProcessingStatus.PENDING, ProcessingStatus.COMPLETED, False),
            (ProcessingStatus.PROCESSING, ProcessingStatus.COMPLETED, True),
            (ProcessingStatus.PROCESSING, ProcessingStatus.FAILED, True),
            (ProcessingStatus.COMPLETED, ProcessingStatus.PENDING, False),
            (ProcessingStatus.FAILED, ProcessingStatus.PENDING, True),
            (ProcessingStatus.FAILED, ProcessingStatus.PROCESSING, False),
        ],
    )
    def test_transitions(self, source: ProcessingStatus, target: ProcessingStatus, allowed: bool) -> None:
        assert source.can_transition_to(target) is allowed

    def test_terminal_states(self) -> None:
        assert ProcessingStatus.COMPLETED.is_terminal
        assert ProcessingStatus.FAILED.is_terminal
        assert not ProcessingStatus.PROCESSING.is_terminal


# ======================================================================
# Options and config loading
# ======================================================================


class TestEscalationPolicy:
    def test_defaults(self) -> None:
        policy = EscalationPolicy()
        assert policy.fulltext_threshold == 10
        assert policy.semantic_threshold == 5

    def test_semantic_above_fulltext_rejected(self) -> None:
        with pytest.raises(ValidationError, match="semantic_threshold"):
            EscalationPolicy(fulltext_threshold=3, semantic_threshold=4)

    def test_unknown_keys_ignored(self) -> None:
        assert EscalationPolicy(bogus=1).lexical_max_results == 50


class TestLoadConfig:
    def test_env_values_override_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "app:\n  name: designvault\n  port: 1\n"
            "search:\n  fulltext_threshold: 7\n  semantic_threshold: 2\n"
            "logging:\n  level: DEBUG\n"
        )

        config = load_config(
            str(config_file), _settings(app_port=9000, log_level="WARNING", openai_api_key="sk")
        )

        assert config["app"]["name"] == "designvault"
        assert config["app"]["port"] == 9000
        assert config["logging"]["level"] == "WARNING"
        assert config["llm"]["available_providers"] == ["openai"]
        assert config["search"]["fulltext_threshold"] == 7

    def test_missing_file_uses_settings_only(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"), _settings())
        assert config["database"]["backend"] == "sqlite"
        assert build_escalation_policy(config) == EscalationPolicy()

    def test_builders_read_sections(self) -> None:
        config = {
            "search": {"fulltext_threshold": 4, "semantic_threshold": 1},
            "classification": {"timeout_seconds": 5, "max_concurrency": 2},
            "telemetry": {"queue_size": 10},
            "upload": {"max_bytes": 2048},
        }
        assert build_escalation_policy(config).fulltext_threshold == 4
        assert build_classification_options(config).max_concurrency == 2
        assert build_telemetry_options(config).queue_size == 10
        assert build_upload_options(config).max_bytes == 2048

    def test_non_mapping_section_falls_back_to_defaults(self) -> None:
        assert build_telemetry_options({"telemetry": "loud"}).queue_size == 1000

    def test_repo_config_file_loads(self) -> None:
        repo_config = Path(__file__).resolve().parents[2] / "config" / "config.yaml"
        config = load_config(str(repo_config), _settings())
        assert build_escalation_policy(config) == EscalationPolicy()
        assert build_upload_options(config).max_bytes == 100 * 1024 * 1024


class TestSettings:
    def test_available_providers_order(self) -> None:
        settings = _settings(
            anthropic_api_key="a", openai_api_key="o", ollama_base_url="http://localhost:11434"
        )
        assert settings.get_available_llm_providers() == ["anthropic", "openai", "ollama"]

    def test_no_providers(self) -> None:
        assert _settings().get_available_llm_providers() == []
