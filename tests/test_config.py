"""
Tests for config file loading and saving
"""

import os

import pytest
import yaml

from constants import FLEX, SOFT_RULE_IDS, TABU, WEEKDAYS
from models import ObjectiveWeights
from scheduler_config import (
    ScheduleRequest,
    SchedulingConfig,
    SoftRule,
    TypePreference,
    default_config_path,
    default_soft_rules,
    load_config,
    save_config,
)


class TestConfigLoading:
    """Tests for configuration file operations."""

    def test_shipped_config_matches_defaults(self):
        """config.yaml should spell out the built-in defaults."""
        if not os.path.exists(default_config_path()):
            pytest.skip("config.yaml not found")
        assert load_config() == SchedulingConfig()

    def test_shipped_config_structure(self):
        with open(default_config_path(), 'r') as f:
            raw = yaml.safe_load(f)
        assert 'scheduling' in raw
        assert [r['id'] for r in raw['scheduling']['soft_rules']] == list(SOFT_RULE_IDS)

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_config(str(tmp_path / "absent.yaml")) == SchedulingConfig()

    def test_round_trip(self, tmp_path):
        path = str(tmp_path / "config.yaml")
        config = SchedulingConfig(
            algorithm=TABU,
            seed=42,
            weights=ObjectiveWeights(fairness=0.5),
            type_preferences=[TypePreference(FLEX, "clean", bonus=12.0)],
        )
        assert save_config(config, path)
        assert load_config(path) == config

    def test_flat_file_without_section(self, tmp_path):
        path = tmp_path / "flat.yaml"
        path.write_text("seed: 9\nallow_overstaffing: false\n")
        config = load_config(str(path))
        assert config.seed == 9
        assert config.allow_overstaffing is False

    def test_non_mapping_file_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="must contain a mapping"):
            load_config(str(path))

    def test_save_to_missing_directory_fails(self, tmp_path):
        assert save_config(SchedulingConfig(), str(tmp_path / "nope" / "config.yaml")) is False


class TestConfigFromDict:

    def test_unknown_key_is_ignored(self, caplog):
        config = SchedulingConfig.from_dict({"colour": "blue", "seed": 3})
        assert config.seed == 3
        assert "Ignoring unknown config key: colour" in caplog.text

    def test_partial_weights_merge_with_base(self):
        config = SchedulingConfig.from_dict({"weights": {"variety": 0.9}})
        assert config.weights.variety == 0.9
        assert config.weights.fairness == ObjectiveWeights().fairness

    def test_soft_rule_priority_defaults(self):
        config = SchedulingConfig.from_dict({"soft_rules": [{"id": "workload-balance"}]})
        assert config.soft_rules == [SoftRule("workload-balance", True, 3)]

    def test_base_is_not_mutated(self):
        base = SchedulingConfig(seed=1)
        derived = SchedulingConfig.from_dict({"seed": 2}, base=base)
        assert base.seed == 1
        assert derived.seed == 2

    def test_enabled_rules_sorted_by_priority(self):
        config = SchedulingConfig(soft_rules=[
            SoftRule("task-variety", priority=5),
            SoftRule("workload-balance", enabled=False),
            SoftRule("avoid-consecutive-heavy", priority=2),
        ])
        assert [r.id for r in config.enabled_soft_rules()] == ["avoid-consecutive-heavy", "task-variety"]

    def test_default_soft_rules(self):
        assert [r.priority for r in default_soft_rules()] == [1, 2, 3, 4]


class TestScheduleRequestFromDict:

    def test_minimal_payload(self):
        request = ScheduleRequest.from_dict({
            "workers": [{"id": "ana", "name": "Ana", "skills": ["pack"]}],
            "tasks": [{"id": "pack", "name": "Packing", "required_skill": "pack"}],
        })
        assert request.days == WEEKDAYS
        assert request.workers[0].skills == frozenset({"pack"})
        assert request.config == SchedulingConfig()

    def test_base_config_applies(self):
        request = ScheduleRequest.from_dict({"config": {"seed": 5}}, base_config=SchedulingConfig(algorithm=TABU))
        assert request.config.algorithm == TABU
        assert request.config.seed == 5
