"""Tests for configuration and extraction policy."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from starbound_kb.config import (
    DEFAULT_DB_PATH,
    PolicyError,
    get_db_path,
    get_policy_path,
    load_policy,
)
from starbound_kb.schemas.policy import ExtractionPolicy


class TestDbPath:
    """Test database path resolution."""

    def test_default_is_bundled_db(self):
        with patch.dict(os.environ, {}, clear=True):
            assert get_db_path() == DEFAULT_DB_PATH
        assert DEFAULT_DB_PATH.name == "bundled_db"
        assert "starbound_kb" in DEFAULT_DB_PATH.parts

    def test_env_override(self):
        with patch.dict(os.environ, {"SBKB_DB_PATH": "/tmp/kb"}, clear=True):
            assert get_db_path() == Path("/tmp/kb")

    def test_policy_path_env(self):
        with patch.dict(os.environ, {}, clear=True):
            assert get_policy_path() is None
        with patch.dict(os.environ, {"SBKB_POLICY_PATH": "policy.yaml"}, clear=True):
            assert get_policy_path() == Path("policy.yaml")


class TestExtractionPolicy:
    """Test policy defaults and validation."""

    def test_rarity_defaults_strictly_decrease(self):
        policy = ExtractionPolicy()
        probabilities = [policy.probability_for(t) for t in ("common", "uncommon", "rare", "rarest")]

        assert probabilities == sorted(probabilities, reverse=True)
        assert len(set(probabilities)) == 4
        assert policy.probability_for("common") == 0.9
        assert policy.probability_for("rarest") == 0.05

    def test_unknown_tier_is_rarest(self):
        assert ExtractionPolicy().probability_for("mythic") == 0.05

    def test_rejects_non_decreasing(self):
        with pytest.raises(ValidationError, match="strictly decrease"):
            ExtractionPolicy(rarity_probabilities={"common": 0.5, "rare": 0.5})

    @pytest.mark.parametrize("value", [0.0, 1.5, -0.1])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(ValidationError):
            ExtractionPolicy(rarity_probabilities={"common": value})

    def test_rejects_empty_rarity_table(self):
        with pytest.raises(ValidationError):
            ExtractionPolicy(rarity_probabilities={})

    def test_lab_tiers_need_three_names(self):
        with pytest.raises(ValidationError):
            ExtractionPolicy(lab_tiers=["basic", "advanced"])

    def test_overload_policies(self):
        assert ExtractionPolicy().overload_wins(3, 1) is True
        assert ExtractionPolicy().overload_wins(1, 1) is False
        assert ExtractionPolicy(overload_primary="first").overload_wins(3, 1) is False
        assert ExtractionPolicy(overload_primary="last").overload_wins(0, 3) is True

    def test_rejects_unknown_overload_policy(self):
        with pytest.raises(ValidationError):
            ExtractionPolicy(overload_primary="longest")

    def test_converter_window_clipping_off_by_default(self):
        assert ExtractionPolicy().clip_converter_window is False
        assert ExtractionPolicy(clip_converter_window=True).clip_converter_window is True


class TestLoadPolicy:
    """Test YAML policy loading."""

    def test_none_gives_defaults(self):
        assert load_policy(None) == ExtractionPolicy()

    def test_partial_override(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text(
            "overload_primary: last\nlab_tiers: [t1, t2, t3]\n",
            encoding="utf-8",
        )
        policy = load_policy(path)

        assert policy.overload_primary == "last"
        assert policy.lab_tiers == ["t1", "t2", "t3"]
        assert policy.probability_for("common") == 0.9

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("", encoding="utf-8")
        assert load_policy(path) == ExtractionPolicy()

    def test_missing_file(self, tmp_path):
        with pytest.raises(PolicyError, match="Failed to read"):
            load_policy(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("lab_tiers: [unclosed\n", encoding="utf-8")
        with pytest.raises(PolicyError, match="not valid YAML"):
            load_policy(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(PolicyError, match="must contain a mapping"):
            load_policy(path)

    def test_validation_error(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("rarity_probabilities:\n  common: 0.2\n  rare: 0.4\n", encoding="utf-8")
        with pytest.raises(PolicyError, match="rarity_probabilities"):
            load_policy(path)
