"""
Tests for settings validation.
"""

import pytest
from pydantic import ValidationError

from fraudlink.config import Settings


class TestSettings:
    """Tests for Settings defaults and validators."""

    def test_defaults(self, test_settings):
        assert test_settings.graph_backend == "networkx"
        assert test_settings.path_max_hops == 6
        assert test_settings.temporal_window_seconds == 3600
        assert not test_settings.is_production

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("GRAPH_BACKEND", "NEO4J")
        monkeypatch.setenv("SAME_IP_PAIR_CAP", "25")

        settings = Settings(_env_file=None)

        assert settings.graph_backend == "neo4j"
        assert settings.same_ip_pair_cap == 25

    @pytest.mark.parametrize("field", ["same_ip_pair_cap", "temporal_window_seconds"])
    def test_non_positive_rejected(self, field):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: 0})

    @pytest.mark.parametrize("hops", [0, 16])
    def test_path_bound_range(self, hops):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, path_max_hops=hops)

    def test_unknown_backend(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, graph_backend="sqlite")

    def test_production_requires_password(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, environment="production", neo4j_password="")

    def test_production_with_password(self):
        settings = Settings(
            _env_file=None,
            environment="production",
            neo4j_uri="bolt://graph.internal:7687",
            neo4j_password="s3cret-graph",
        )
        assert settings.is_production
