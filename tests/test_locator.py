"""
Tests for the type-directed component locator.
"""

import pytest

from catrules.ability_estimation import (
    AbilityEstimator,
    AbilityPrior,
    EAPAbilityEstimator,
)
from catrules.config_base import VariantRegistry, locate, registry
from catrules.item_selection import (
    FisherInformationCriterion,
    ItemCriterion,
    ItemStrategyNextItemRule,
    NextItemRule,
)
from catrules.rules import CatRules
from catrules.stopping_rules import (
    FixedItemsTerminationCondition,
    TerminationCondition,
)
from catrules.trackers import NULL_TRACKER, AbilityTracker, ThetaHistoryTracker
from tests.conftest import FakeEstimator, FakeTermination


class TestPassThrough:
    """An ingredient already satisfying the capability is returned unchanged."""

    def test_returns_first_matching_instance(self):
        first, second = FakeEstimator(theta=1.0), FakeEstimator(theta=2.0)
        assert locate(AbilityEstimator, ["noise", first, second]) is first

    def test_instance_beats_construction(self):
        supplied = FakeEstimator()
        found = locate(AbilityEstimator, [AbilityPrior(0.5, 0.8), supplied])
        assert found is supplied

    def test_ingredients_are_not_modified(self):
        ingredients = [AbilityPrior(), ThetaHistoryTracker]
        locate(AbilityEstimator, ingredients)
        assert ingredients == [AbilityPrior(), ThetaHistoryTracker]


class TestConstruction:
    """Without a matching instance the capability builds a default."""

    def test_registered_variant_builds_from_plain_value(self):
        prior = AbilityPrior(mean=0.5, sd=0.8)
        found = locate(AbilityEstimator, [prior])
        assert isinstance(found, EAPAbilityEstimator)
        assert found.prior is prior

    def test_defaultable_class_ingredient_is_built(self):
        found = locate(AbilityEstimator, [EAPAbilityEstimator])
        assert isinstance(found, EAPAbilityEstimator)
        assert found.prior == AbilityPrior()

    def test_class_ingredient_resolves_full_rules(self):
        rules = CatRules.from_ingredients(
            EAPAbilityEstimator,
            FisherInformationCriterion,
            FixedItemsTerminationCondition,
        )
        assert isinstance(rules.ability_estimator, EAPAbilityEstimator)
        criterion = rules.next_item_rule.criterion
        assert criterion.ability_estimator is rules.ability_estimator

    def test_class_ingredient_receives_bindings(self):
        estimator = FakeEstimator()
        found = locate(
            AbilityTracker, [ThetaHistoryTracker], ability_estimator=estimator
        )
        assert isinstance(found, ThetaHistoryTracker)
        assert found.ability_estimator is estimator

    def test_class_ingredient_without_binding_falls_back_to_default(self):
        assert locate(AbilityTracker, [ThetaHistoryTracker]) is NULL_TRACKER

    def test_nested_resolution_builds_next_item_rule(self):
        estimator = FakeEstimator()
        found = locate(
            NextItemRule, [FisherInformationCriterion], ability_estimator=estimator
        )
        assert isinstance(found, ItemStrategyNextItemRule)
        assert isinstance(found.criterion, FisherInformationCriterion)
        assert found.criterion.ability_estimator is estimator

    def test_criterion_instance_is_wrapped(self):
        criterion = FisherInformationCriterion(ability_estimator=FakeEstimator())
        found = locate(NextItemRule, [criterion])
        assert found.criterion is criterion

    def test_termination_class_ingredient_uses_settings_default(self):
        found = locate(TerminationCondition, [FixedItemsTerminationCondition])
        assert found == FixedItemsTerminationCondition(num_items=15)


class TestFailure:
    """Failure is a return value, never an exception."""

    def test_returns_none_when_nothing_applies(self):
        assert locate(TerminationCondition, [1, "two", 3.0]) is None

    def test_criterion_without_estimator_fails(self):
        assert locate(ItemCriterion, [FisherInformationCriterion]) is None

    def test_tracker_defaults_to_null(self):
        assert locate(AbilityTracker, []) is NULL_TRACKER

    def test_required_tracker_has_no_default(self, require_trackers):
        assert locate(AbilityTracker, []) is None

    def test_instance_of_other_capability_does_not_match(self):
        assert locate(AbilityEstimator, [FakeTermination()]) is None


class TestVariantRegistry:
    """Registered variants are consulted in registration order."""

    def test_bundled_variants_are_registered(self):
        assert EAPAbilityEstimator in registry.variants(AbilityEstimator)
        assert ItemStrategyNextItemRule in registry.variants(NextItemRule)

    def test_variants_filtered_by_capability(self):
        assert EAPAbilityEstimator not in registry.variants(NextItemRule)

    def test_rejects_non_capability(self):
        with pytest.raises(TypeError, match="not a Capability"):
            VariantRegistry().register(int)

    def test_register_is_idempotent(self):
        local = VariantRegistry()
        local.register(EAPAbilityEstimator)
        local.register(EAPAbilityEstimator)
        assert local.variants(AbilityEstimator) == [EAPAbilityEstimator]
