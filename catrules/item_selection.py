"""
Next-item rules for Computerized Adaptive Testing.

A next-item rule chooses which item to administer next. The bundled rule,
``ItemStrategyNextItemRule``, ranks the unadministered items of a pool by an
``ItemCriterion`` and picks among the best. With ``FisherInformationCriterion``
this is Maximum Fisher Information (MFI) selection under the 2PL model:

    I_i(theta) = a_i^2 * P_i(theta) * (1 - P_i(theta))

Where P_i(theta) = 1 / (1 + exp(-a_i * (theta - b_i)))

Randomesque exposure control (Kingsbury & Zara, 1989) picks uniformly among
the top-K items; K=1 always picks the single most informative item.

Both the criterion and the rule are composite configurations, so a tracker
held by a criterion is discovered by tracker composition.

References:
    - van der Linden, W.J. (1998). Bayesian item selection criteria for
      adaptive testing.
    - Kingsbury, G. G., & Zara, A. R. (1989). Procedures for selecting items
      for computerized adaptive tests.
"""

import abc
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from catrules.ability_estimation import AbilityEstimator
from catrules.config import get_settings
from catrules.config_base import Capability, CatConfigBase, locate, registry
from catrules.responses import CalibratedItem, TrackedResponses
from catrules.trackers import AbilityTracker

logger = logging.getLogger(__name__)


def fisher_information_2pl(
    theta: float,
    discrimination: float,
    difficulty: float,
) -> float:
    """
    Compute Fisher information for a 2PL IRT item at a given ability level.

    Args:
        theta: Current ability estimate.
        discrimination: Item discrimination parameter (a). Must be > 0.
        difficulty: Item difficulty parameter (b).

    Returns:
        Fisher information value (non-negative).

    Raises:
        ValueError: If discrimination is not positive.
    """
    if discrimination <= 0:
        raise ValueError(
            f"Discrimination parameter must be positive, got {discrimination}"
        )

    logit = discrimination * (theta - difficulty)
    if logit >= 0:
        prob = 1.0 / (1.0 + math.exp(-logit))
    else:
        exp_logit = math.exp(logit)
        prob = exp_logit / (1.0 + exp_logit)

    return (discrimination**2) * prob * (1.0 - prob)


class ItemCriterion(Capability, CatConfigBase):
    """Capability: scores a candidate item, higher is better."""

    component_name = "item_criterion"

    @abc.abstractmethod
    def score_items(
        self,
        items: Sequence[CalibratedItem],
        tracked_responses: TrackedResponses,
    ) -> List[float]:
        """Score each of ``items`` given the responses so far."""


@dataclass(frozen=True)
class FisherInformationCriterion(ItemCriterion):
    """
    Fisher information at the current ability estimate.

    If the criterion owns an ``ability_tracker`` whose latest estimate was
    taken for exactly ``tracked_responses``, that estimate is reused instead
    of re-estimating.
    """

    ability_estimator: AbilityEstimator
    ability_tracker: Optional[AbilityTracker] = None

    @classmethod
    def build_from(
        cls, ingredients: Sequence[Any], **bindings: Any
    ) -> Optional["FisherInformationCriterion"]:
        ability_estimator = bindings.get("ability_estimator")
        if ability_estimator is None:
            ability_estimator = locate(AbilityEstimator, ingredients)
        if ability_estimator is None:
            return None
        return cls(ability_estimator=ability_estimator)

    def current_theta(self, tracked_responses: TrackedResponses) -> float:
        if self.ability_tracker is not None:
            estimate = self.ability_tracker.current_estimate(tracked_responses)
            if estimate is not None:
                return estimate[0]
        theta, _ = self.ability_estimator.estimate(tracked_responses.responses)
        return theta

    def score_items(
        self,
        items: Sequence[CalibratedItem],
        tracked_responses: TrackedResponses,
    ) -> List[float]:
        theta = self.current_theta(tracked_responses)
        scores = []
        for item in items:
            assert item.irt_discrimination is not None
            assert item.irt_difficulty is not None
            scores.append(
                fisher_information_2pl(
                    theta=theta,
                    discrimination=item.irt_discrimination,
                    difficulty=item.irt_difficulty,
                )
            )
        return scores


class NextItemRule(Capability, CatConfigBase):
    """Capability: chooses the next item to administer."""

    component_name = "next_item_rule"

    @abc.abstractmethod
    def select(
        self,
        tracked_responses: TrackedResponses,
        item_pool: Sequence[CalibratedItem],
        rng: Optional[random.Random] = None,
    ) -> Optional[CalibratedItem]:
        """Return the next item, or None if the pool is exhausted."""


@dataclass
class ItemCandidate:
    """An item with its criterion score."""

    item: CalibratedItem
    score: float


def _default_randomesque_k() -> int:
    return get_settings().RANDOMESQUE_K


@registry.register
@dataclass(frozen=True)
class ItemStrategyNextItemRule(NextItemRule):
    """Pick among the top ``randomesque_k`` items ranked by ``criterion``."""

    criterion: ItemCriterion
    randomesque_k: int = field(default_factory=_default_randomesque_k)

    def __post_init__(self) -> None:
        if self.randomesque_k < 1:
            raise ValueError(f"randomesque_k must be >= 1, got {self.randomesque_k}")

    @classmethod
    def build_from(
        cls, ingredients: Sequence[Any], **bindings: Any
    ) -> Optional["ItemStrategyNextItemRule"]:
        criterion = locate(ItemCriterion, ingredients, **bindings)
        if criterion is None:
            return None
        return cls(criterion=criterion)

    def rank(
        self,
        tracked_responses: TrackedResponses,
        item_pool: Sequence[CalibratedItem],
    ) -> List[ItemCandidate]:
        """Score eligible items, best first."""
        administered = tracked_responses.administered
        eligible = [
            item
            for item in item_pool
            if item.id not in administered
            and item.irt_discrimination is not None
            and item.irt_difficulty is not None
            and item.irt_discrimination > 0
        ]
        scores = self.criterion.score_items(eligible, tracked_responses)
        candidates = [
            ItemCandidate(item=item, score=score)
            for item, score in zip(eligible, scores)
        ]
        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates

    def select(
        self,
        tracked_responses: TrackedResponses,
        item_pool: Sequence[CalibratedItem],
        rng: Optional[random.Random] = None,
    ) -> Optional[CalibratedItem]:
        """
        Select the next item from ``item_pool``.

        Args:
            tracked_responses: Responses so far; administered items are skipped.
            item_pool: Candidate items with calibrated parameters.
            rng: Optional Random instance for deterministic randomesque choice.

        Returns:
            The selected item, or None if no eligible items remain.
        """
        candidates = self.rank(tracked_responses, item_pool)
        if not candidates:
            logger.warning(
                "No eligible items remaining. "
                f"Pool size: {len(item_pool)}, "
                f"administered: {len(tracked_responses)}"
            )
            return None

        top_k = candidates[: min(self.randomesque_k, len(candidates))]
        selected = (rng or random).choice(top_k)

        logger.debug(
            f"Item selection: eligible={len(candidates)}, "
            f"selected item {selected.item.id} (score={selected.score:.4f})"
        )
        return selected.item
