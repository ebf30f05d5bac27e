"""
Termination conditions for Computerized Adaptive Testing (CAT).

``TerminationCondition`` is the capability deciding whether a session should
stop after the current item. Two conditions are bundled:

- ``FixedItemsTerminationCondition``: stop after a fixed test length.
- ``StoppingRulesTerminationCondition``: the precision-based rule set below.

Stopping Rules (evaluated in priority order):
    1. Minimum items: Test must continue until min_items are administered
    2. Maximum items: Test stops immediately at max_items (safety limit)
    3. SE threshold: Test stops when SE(theta) < se_threshold
    4. Theta stabilization: Test may stop when theta estimates converge

References:
    - Kingsbury, G. G., & Weiss, D. J. (1983). A comparison of IRT-based
      adaptive mastery testing and a sequential mastery testing procedure.
      In D. J. Weiss (Ed.), New horizons in testing.
    - van der Linden, W. J., & Glas, C. A. W. (Eds.). (2010). Elements of
      adaptive testing. New York: Springer.
"""

import abc
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

from catrules.ability_estimation import AbilityEstimator
from catrules.config import get_settings
from catrules.config_base import Capability, locate
from catrules.responses import TrackedResponses

logger = logging.getLogger(__name__)


class TerminationCondition(Capability):
    """Capability: decides whether the session stops after the current item."""

    component_name = "termination_condition"

    @abc.abstractmethod
    def should_stop(self, tracked_responses: TrackedResponses) -> bool:
        """True if no further item should be administered."""


@dataclass(frozen=True)
class FixedItemsTerminationCondition(TerminationCondition):
    """Stop once ``num_items`` responses have been recorded."""

    num_items: int = field(default_factory=lambda: get_settings().MAX_ITEMS)

    def __post_init__(self) -> None:
        if self.num_items < 1:
            raise ValueError(f"num_items must be positive, got {self.num_items}")

    @classmethod
    def build_from(
        cls, ingredients: Sequence[Any], **bindings: Any
    ) -> Optional["FixedItemsTerminationCondition"]:
        return cls()

    def should_stop(self, tracked_responses: TrackedResponses) -> bool:
        return len(tracked_responses) >= self.num_items


@dataclass
class StoppingDecision:
    """
    Result of evaluating stopping criteria for a CAT session.

    Attributes:
        should_stop: Whether the test should terminate.
        reason: Primary reason for stopping (if should_stop=True), or None.
        details: Diagnostic information including:
            - se: Current standard error of theta
            - num_items: Number of items administered
            - se_threshold: Configured SE threshold
            - min_items_met: Whether minimum items requirement is satisfied
            - at_max_items: Whether maximum items limit has been reached
            - theta_stable: Whether theta has stabilized (None if unknown)
            - delta_theta: Change in theta since previous estimate (if known)
    """

    should_stop: bool
    reason: Optional[str]
    details: Dict[str, Any]


def check_stopping_criteria(
    se: float,
    num_items: int,
    previous_theta: Optional[float] = None,
    theta: Optional[float] = None,
    se_threshold: Optional[float] = None,
    min_items: Optional[int] = None,
    max_items: Optional[int] = None,
    delta_theta_threshold: Optional[float] = None,
    se_stabilization_threshold: Optional[float] = None,
) -> StoppingDecision:
    """
    Evaluate the stopping rules in priority order.

    Thresholds left as None take their value from settings.

    Args:
        se: Current standard error of the ability estimate.
        num_items: Number of items administered so far.
        previous_theta: Theta estimate before the latest response, if any.
        theta: Theta estimate after the latest response, if any.
        se_threshold: Target SE for stopping.
        min_items: Minimum items before stopping is allowed.
        max_items: Maximum items.
        delta_theta_threshold: Maximum theta change counted as stable.
        se_stabilization_threshold: SE below which stabilization may stop
            the test.

    Returns:
        StoppingDecision with should_stop flag, reason, and diagnostics.

    Raises:
        ValueError: If se or num_items is negative.
    """
    settings = get_settings()
    se_threshold = settings.SE_THRESHOLD if se_threshold is None else se_threshold
    min_items = settings.MIN_ITEMS if min_items is None else min_items
    max_items = settings.MAX_ITEMS if max_items is None else max_items
    if delta_theta_threshold is None:
        delta_theta_threshold = settings.DELTA_THETA_THRESHOLD
    if se_stabilization_threshold is None:
        se_stabilization_threshold = settings.SE_STABILIZATION_THRESHOLD

    if se < 0:
        raise ValueError(f"Standard error must be non-negative, got {se}")
    if num_items < 0:
        raise ValueError(f"Number of items must be non-negative, got {num_items}")

    details: Dict[str, Any] = {
        "se": se,
        "num_items": num_items,
        "se_threshold": se_threshold,
        "min_items_met": num_items >= min_items,
        "at_max_items": num_items >= max_items,
        "theta_stable": None,
    }

    theta_stable = False
    if previous_theta is not None and theta is not None:
        delta_theta = abs(theta - previous_theta)
        theta_stable = delta_theta < delta_theta_threshold
        details["delta_theta"] = round(delta_theta, 4)
        details["theta_stable"] = theta_stable

    if num_items < min_items:
        return StoppingDecision(should_stop=False, reason=None, details=details)

    if num_items >= max_items:
        logger.info(f"Stopping: reached maximum items ({num_items}/{max_items})")
        return StoppingDecision(should_stop=True, reason="max_items", details=details)

    if se < se_threshold:
        logger.info(
            f"Stopping: SE threshold met (SE={se:.4f} < {se_threshold:.4f}) "
            f"after {num_items} items"
        )
        return StoppingDecision(
            should_stop=True, reason="se_threshold", details=details
        )

    # Convergence alone is not enough early on; SE must be close to target
    if theta_stable and se < se_stabilization_threshold:
        logger.info(
            f"Stopping: theta stabilized (delta={details['delta_theta']:.4f}) "
            f"with SE={se:.4f} after {num_items} items"
        )
        return StoppingDecision(
            should_stop=True, reason="theta_stable", details=details
        )

    return StoppingDecision(should_stop=False, reason=None, details=details)


@dataclass(frozen=True)
class StoppingRulesTerminationCondition(TerminationCondition):
    """
    Precision-based stopping: min/max items, SE threshold, theta stability.

    Re-estimates ability with its own estimator, so it can be resolved from
    the ingredients alone.
    """

    ability_estimator: AbilityEstimator
    se_threshold: Optional[float] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None

    @classmethod
    def build_from(
        cls, ingredients: Sequence[Any], **bindings: Any
    ) -> Optional["StoppingRulesTerminationCondition"]:
        ability_estimator = locate(AbilityEstimator, ingredients)
        if ability_estimator is None:
            return None
        return cls(ability_estimator=ability_estimator)

    def evaluate(self, tracked_responses: TrackedResponses) -> StoppingDecision:
        responses = tracked_responses.responses
        theta, se = self.ability_estimator.estimate(responses)
        previous_theta = None
        if len(responses) >= 2:
            previous_theta, _ = self.ability_estimator.estimate(responses[:-1])
        return check_stopping_criteria(
            se=se,
            num_items=len(responses),
            previous_theta=previous_theta,
            theta=theta,
            se_threshold=self.se_threshold,
            min_items=self.min_items,
            max_items=self.max_items,
        )

    def should_stop(self, tracked_responses: TrackedResponses) -> bool:
        return self.evaluate(tracked_responses).should_stop
