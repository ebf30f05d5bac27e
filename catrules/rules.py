"""
CAT configuration records and their resolving constructor.

``CatRules`` holds the rules for a CAT: next-item rule, termination
condition, ability estimator and ability tracker. It does not hold the item
bank nor any of the interactivity hooks needed to actually run the CAT;
``CatLoopConfig`` wraps a ``CatRules`` together with those hooks.

Two ways to build ``CatRules``:

    # Explicit: direct field assignment, tracker defaults to NULL_TRACKER
    rules = CatRules(
        next_item_rule=rule,
        termination_condition=FixedItemsTerminationCondition(20),
        ability_estimator=estimator,
    )

    # Implicit: resolve every component from an unordered ingredient list
    rules = CatRules.from_ingredients(
        AbilityPrior(0.0, 1.0),
        FisherInformationCriterion,
        FixedItemsTerminationCondition(20),
    )

The implicit constructor resolves components in dependency order: ability
estimator, then ability tracker (bound to the estimator), then next-item
rule (bound to both), then termination condition. The final tracker is the
composition of the resolved tracker with every tracker nested inside the
next-item rule, so that all of them observe the same responses.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple, Type

from catrules.ability_estimation import AbilityEstimator
from catrules.config_base import (
    Capability,
    CatConfigBase,
    ConfigurationMissing,
    describe_ingredient,
    locate,
)
from catrules.item_selection import NextItemRule
from catrules.responses import TrackedResponses
from catrules.stopping_rules import TerminationCondition
from catrules.trackers import (
    NULL_TRACKER,
    AbilityTracker,
    ConsAbilityTracker,
    TrackerChain,
    as_chain,
    concat,
)

logger = logging.getLogger(__name__)

GetResponse = Callable[[int, Any], int]
NewResponseCallback = Callable[[TrackedResponses, bool], None]


def collect_trackers(
    value: Any, ability_tracker: Optional[AbilityTracker] = None
) -> TrackerChain:
    """
    Collect every tracker reachable from ``value`` into one chain.

    - A tracker becomes a one-element chain (chains are returned unchanged).
    - A ``CatConfigBase`` is walked child by child in declared order; the
      non-empty results are concatenated, the first child outermost.
    - Anything else contributes nothing (``NULL_TRACKER``).

    With ``ability_tracker`` given, ``value`` is composed first and the
    explicit tracker is then placed in front of everything found inside it,
    unless it is the empty chain.

    Args:
        value: Object to search, typically a next-item rule or CatRules.
        ability_tracker: Optional tracker that takes precedence.

    Returns:
        The composed chain; ``NULL_TRACKER`` if no tracker was found.
    """
    rest = _collect(value)
    if ability_tracker is None or ability_tracker is NULL_TRACKER:
        return rest
    if isinstance(ability_tracker, TrackerChain):
        return concat(ability_tracker, rest)
    if rest is NULL_TRACKER:
        return as_chain(ability_tracker)
    return ConsAbilityTracker(ability_tracker, rest)


def _collect(value: Any) -> TrackerChain:
    if isinstance(value, AbilityTracker):
        return as_chain(value)
    if isinstance(value, CatConfigBase):
        acc: TrackerChain = NULL_TRACKER
        # Fold from the last child so the first child ends up outermost
        for _, child in reversed(value.children()):
            found = _collect(child)
            if found is not NULL_TRACKER:
                acc = concat(found, acc)
        return acc
    return NULL_TRACKER


_CAT_RULES_FIELDS: Tuple[Tuple[str, Type[Capability]], ...] = (
    ("next_item_rule", NextItemRule),
    ("termination_condition", TerminationCondition),
    ("ability_estimator", AbilityEstimator),
    ("ability_tracker", AbilityTracker),
)


@dataclass(frozen=True, kw_only=True)
class CatRules(CatConfigBase):
    """
    Configuration of the rules for a CAT.

    Attributes:
        next_item_rule: The rule to choose the next item given the current state.
        termination_condition: The rule to choose when to terminate the CAT.
        ability_estimator: Estimates the testee's current ability.
        ability_tracker: Tracks the testee's ability over the session. A single
            tracker or tracker chain; ``NULL_TRACKER`` when there is none.
    """

    next_item_rule: NextItemRule
    termination_condition: TerminationCondition
    ability_estimator: AbilityEstimator
    ability_tracker: AbilityTracker = NULL_TRACKER

    def __post_init__(self) -> None:
        for name, capability in _CAT_RULES_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, capability):
                raise TypeError(
                    f"CatRules.{name} must be a {capability.__name__}, "
                    f"got {describe_ingredient(value)}"
                )

    @classmethod
    def from_ingredients(cls, *ingredients: Any) -> "CatRules":
        """
        Resolve a ``CatRules`` from an unordered list of ingredients.

        Args:
            *ingredients: Components, component classes and plain values
                (e.g. an ``AbilityPrior``) to resolve the rules from.

        Returns:
            A fully resolved CatRules.

        Raises:
            ConfigurationMissing: Naming the first component, in resolution
                order, that could not be found or built.
        """
        bits: List[Any] = list(ingredients)
        logger.debug(
            f"Resolving CatRules from {len(bits)} ingredients: "
            f"{[describe_ingredient(b) for b in bits]}"
        )

        ability_estimator = _require(AbilityEstimator, bits)
        ability_tracker = _require(
            AbilityTracker, bits, ability_estimator=ability_estimator
        )
        next_item_rule = _require(
            NextItemRule,
            bits,
            ability_estimator=ability_estimator,
            ability_tracker=ability_tracker,
        )
        termination_condition = _require(TerminationCondition, bits)

        rules = cls(
            next_item_rule=next_item_rule,
            termination_condition=termination_condition,
            ability_estimator=ability_estimator,
            ability_tracker=collect_trackers(next_item_rule, ability_tracker),
        )
        logger.info(
            f"Resolved CatRules: "
            f"next_item_rule={describe_ingredient(next_item_rule)}, "
            f"termination_condition={describe_ingredient(termination_condition)}, "
            f"ability_estimator={describe_ingredient(ability_estimator)}, "
            f"trackers={len(as_chain(rules.ability_tracker))}"
        )
        return rules


def _require(
    capability: Type[Capability], bits: List[Any], **bindings: Any
) -> Any:
    found = locate(capability, bits, **bindings)
    if found is None:
        logger.warning(
            f"CAT configuration is missing a {capability.component_name}",
            extra={
                "component": capability.component_name,
                "ingredient_count": len(bits),
            },
        )
        raise ConfigurationMissing(capability.component_name, bits)
    return found


@dataclass(frozen=True, kw_only=True)
class CatLoopConfig(CatConfigBase):
    """
    Configuration for a simulatable CAT.

    The same ``rules`` may back any number of loop configs, e.g. one per
    simulated testee. Neither callback is invoked here.

    Attributes:
        rules: The CAT rules, e.g. a CatRules.
        get_response: Function (index, label) -> int obtaining the testee's
            response for a given item, e.g. by prompting or from simulated data.
        new_response_callback: Optional function (tracked_responses, terminating)
            called each time there is a new response.
    """

    rules: CatConfigBase
    get_response: GetResponse
    new_response_callback: Optional[NewResponseCallback] = None

    def __post_init__(self) -> None:
        if not isinstance(self.rules, CatConfigBase):
            raise TypeError(
                f"rules must be a CatConfigBase, got {describe_ingredient(self.rules)}"
            )
        if not callable(self.get_response):
            raise TypeError(
                "get_response must be callable, got "
                f"{describe_ingredient(self.get_response)}"
            )
        if self.new_response_callback is not None and not callable(
            self.new_response_callback
        ):
            raise TypeError(
                "new_response_callback must be callable or None, got "
                f"{describe_ingredient(self.new_response_callback)}"
            )
