"""
Rule resolution and composition for Computerized Adaptive Testing (CAT).

This package assembles the configuration of a CAT session from an unordered
list of components: an ability estimator, ability trackers, a next-item rule
and a termination condition.

Usage:
    from catrules import (
        AbilityPrior,
        CatLoopConfig,
        CatRules,
        FisherInformationCriterion,
        FixedItemsTerminationCondition,
        ThetaHistoryTracker,
    )

    rules = CatRules.from_ingredients(
        AbilityPrior(0.0, 1.0),
        ThetaHistoryTracker,
        FisherInformationCriterion,
        FixedItemsTerminationCondition(20),
    )
    config = CatLoopConfig(rules=rules, get_response=ask_testee)
"""

from .ability_estimation import (
    AbilityEstimator,
    AbilityPrior,
    EAPAbilityEstimator,
)
from .config import Settings, get_settings, settings
from .config_base import (
    Capability,
    CatConfigBase,
    CatConfigurationError,
    ConfigurationMissing,
    locate,
    registry,
)
from .item_selection import (
    FisherInformationCriterion,
    ItemCriterion,
    ItemStrategyNextItemRule,
    NextItemRule,
    fisher_information_2pl,
)
from .logging_config import setup_logging
from .responses import CalibratedItem, ItemResponse, TrackedResponses
from .rules import CatLoopConfig, CatRules, collect_trackers
from .stopping_rules import (
    FixedItemsTerminationCondition,
    StoppingDecision,
    StoppingRulesTerminationCondition,
    TerminationCondition,
    check_stopping_criteria,
)
from .trackers import (
    NULL_TRACKER,
    AbilityTracker,
    ConsAbilityTracker,
    NullAbilityTracker,
    ThetaHistoryTracker,
    TrackerChain,
    TrackerLeaf,
    chain_trackers,
    concat,
)

__all__ = [
    "CatRules",
    "CatLoopConfig",
    "collect_trackers",
    "locate",
    "registry",
    "Capability",
    "CatConfigBase",
    "CatConfigurationError",
    "ConfigurationMissing",
    "AbilityEstimator",
    "AbilityPrior",
    "EAPAbilityEstimator",
    "AbilityTracker",
    "TrackerChain",
    "NullAbilityTracker",
    "NULL_TRACKER",
    "TrackerLeaf",
    "ConsAbilityTracker",
    "ThetaHistoryTracker",
    "chain_trackers",
    "concat",
    "ItemCriterion",
    "FisherInformationCriterion",
    "NextItemRule",
    "ItemStrategyNextItemRule",
    "fisher_information_2pl",
    "TerminationCondition",
    "FixedItemsTerminationCondition",
    "StoppingRulesTerminationCondition",
    "StoppingDecision",
    "check_stopping_criteria",
    "CalibratedItem",
    "ItemResponse",
    "TrackedResponses",
    "Settings",
    "settings",
    "get_settings",
    "setup_logging",
]
