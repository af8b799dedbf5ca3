"""
Tests for constants.py - Configuration constants
"""

import pytest

from constants import (
    ALGORITHMS,
    AVOID_CONSECUTIVE_HEAVY,
    DEFAULT_OBJECTIVE_WEIGHTS,
    INITIAL_ALGORITHMS,
    OBJECTIVE_NAMES,
    OPERATOR_TYPES,
    SAME_TASK_DECAY,
    CONSECUTIVE_HEAVY_PENALTY,
    SCARCE_SKILL_RESERVE_PENALTY,
    SOFT_RULE_IDS,
    SOFT_RULE_METADATA,
    TYPE_FULL_PENALTY,
    TYPE_MATCH_BONUS,
    WEEKDAYS,
)


class TestPlanningHorizon:

    def test_five_day_week(self):
        assert WEEKDAYS == ("Mon", "Tue", "Wed", "Thu", "Fri")

    def test_operator_types(self):
        assert set(OPERATOR_TYPES) == {"Regular", "Flex", "Coordinator"}


class TestAlgorithms:

    def test_initial_algorithms_are_selectable(self):
        assert set(INITIAL_ALGORITHMS) <= set(ALGORITHMS)
        assert len(ALGORITHMS) == 6


class TestObjectiveWeights:
    """Default weights should describe a complete, normalised mix."""

    def test_weights_sum_to_one(self):
        assert sum(DEFAULT_OBJECTIVE_WEIGHTS.values()) == pytest.approx(1.0)

    def test_names(self):
        assert OBJECTIVE_NAMES == tuple(DEFAULT_OBJECTIVE_WEIGHTS)
        assert len(OBJECTIVE_NAMES) == 5


class TestScoringTerms:

    def test_heavy_spacing_is_smallest_penalty(self):
        """Consecutive heavy tasks are the last thing the scorer gives up on."""
        assert CONSECUTIVE_HEAVY_PENALTY < SCARCE_SKILL_RESERVE_PENALTY
        assert CONSECUTIVE_HEAVY_PENALTY < TYPE_FULL_PENALTY

    def test_type_match_outweighs_repeat_decay(self):
        assert TYPE_MATCH_BONUS > SAME_TASK_DECAY


class TestSoftRules:

    def test_priorities_are_distinct(self):
        priorities = [meta['default_priority'] for meta in SOFT_RULE_METADATA.values()]
        assert sorted(priorities) == [1, 2, 3, 4]

    def test_heavy_streak_relaxed_first(self):
        """The highest priority number is the first rule to give way."""
        lowest = max(SOFT_RULE_METADATA, key=lambda r: SOFT_RULE_METADATA[r]['default_priority'])
        assert lowest == AVOID_CONSECUTIVE_HEAVY

    def test_metadata_complete(self):
        for rule_id in SOFT_RULE_IDS:
            assert {'label', 'description', 'default_priority'} <= set(SOFT_RULE_METADATA[rule_id])
