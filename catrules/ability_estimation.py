"""
Ability estimators for Computerized Adaptive Testing.

``AbilityEstimator`` is the capability every estimator satisfies. The bundled
variant is EAP (Expected A Posteriori): the posterior mean of ability
(theta) under a Gaussian prior and the 2PL IRT model, integrated by
quadrature on an even grid. EAP stays finite on all-correct and
all-incorrect response patterns where MLE diverges (Bock & Mislevy, 1982).

Formula:
    theta_hat = integral(theta * L(theta) * prior(theta)) / integral(L(theta) * prior(theta))

Where L(theta) = product of P(response_i | theta, a_i, b_i) for all administered items.

The locator builds an ``EAPAbilityEstimator`` whenever an ``AbilityPrior``
is among the ingredients and no estimator was supplied directly.
"""

import abc
import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from catrules.config import get_settings
from catrules.config_base import Capability, registry
from catrules.responses import ItemResponse

logger = logging.getLogger(__name__)

# Clamping bounds for priors derived from previous sessions
PRIOR_MEAN_BOUNDS = (-3.0, 3.0)
PRIOR_SD_BOUNDS = (0.1, 1.0)


class AbilityEstimator(Capability):
    """Capability: estimates a testee's ability from their responses."""

    component_name = "ability_estimator"

    @abc.abstractmethod
    def estimate(self, responses: Sequence[ItemResponse]) -> Tuple[float, float]:
        """
        Estimate ability from the responses so far.

        Returns:
            Tuple of (theta_estimate, standard_error).
        """


@dataclass(frozen=True)
class AbilityPrior:
    """Gaussian prior on ability, used as an ingredient for EAP estimation."""

    mean: float = 0.0
    sd: float = 1.0

    def __post_init__(self) -> None:
        if self.sd <= 0:
            raise ValueError(f"Prior SD must be positive, got {self.sd}")

    @classmethod
    def from_previous_sessions(
        cls,
        previous_thetas: Sequence[float],
        previous_ses: Sequence[float],
    ) -> "AbilityPrior":
        """
        Compute a prior from a testee's previous sessions.

        Uses precision-weighted averaging of previous theta estimates, where
        precision = 1/SE². Sessions with a lower SE (longer, more precise
        tests) carry more weight.

        Args:
            previous_thetas: Final theta estimates from past sessions.
            previous_ses: Corresponding SE values, same length as
                previous_thetas.

        Returns:
            The weighted prior, clamped to PRIOR_MEAN_BOUNDS and
            PRIOR_SD_BOUNDS. The population prior N(0, 1) if there is no
            usable session.

        Raises:
            ValueError: If the two sequences differ in length.
        """
        if len(previous_thetas) != len(previous_ses):
            raise ValueError(
                f"previous_thetas length ({len(previous_thetas)}) must match "
                f"previous_ses length ({len(previous_ses)})"
            )

        total_precision = 0.0
        weighted_sum = 0.0
        for theta, se in zip(previous_thetas, previous_ses):
            if se <= 0:
                logger.warning(f"Skipping session with non-positive SE: {se}")
                continue
            precision = 1.0 / (se**2)
            total_precision += precision
            weighted_sum += theta * precision

        if total_precision == 0:
            return cls()

        mean = weighted_sum / total_precision
        sd = 1.0 / math.sqrt(total_precision)
        return cls(
            mean=min(max(mean, PRIOR_MEAN_BOUNDS[0]), PRIOR_MEAN_BOUNDS[1]),
            sd=min(max(sd, PRIOR_SD_BOUNDS[0]), PRIOR_SD_BOUNDS[1]),
        )


def _default_quadrature_points() -> int:
    return get_settings().QUADRATURE_POINTS


def _default_quadrature_range() -> Tuple[float, float]:
    return get_settings().quadrature_range


@registry.register
@dataclass(frozen=True)
class EAPAbilityEstimator(AbilityEstimator):
    """Expected A Posteriori ability estimation with even-grid quadrature."""

    prior: AbilityPrior = field(default_factory=AbilityPrior)
    quadrature_points: int = field(default_factory=_default_quadrature_points)
    quadrature_range: Tuple[float, float] = field(
        default_factory=_default_quadrature_range
    )

    def __post_init__(self) -> None:
        if self.quadrature_points < 2:
            raise ValueError(
                f"quadrature_points must be at least 2, got {self.quadrature_points}"
            )
        low, high = self.quadrature_range
        if low >= high:
            raise ValueError(f"Empty quadrature range: {self.quadrature_range}")

    @classmethod
    def build_from(
        cls, ingredients: Sequence[Any], **bindings: Any
    ) -> Optional["EAPAbilityEstimator"]:
        for ingredient in ingredients:
            if isinstance(ingredient, AbilityPrior):
                return cls(prior=ingredient)
        # Given as a class ingredient without a prior: population prior
        if any(ingredient is cls for ingredient in ingredients):
            return cls()
        return None

    @property
    def theta_points(self) -> List[float]:
        low, high = self.quadrature_range
        step = (high - low) / (self.quadrature_points - 1)
        return [low + step * i for i in range(self.quadrature_points)]

    def estimate(self, responses: Sequence[ItemResponse]) -> Tuple[float, float]:
        """
        Estimate ability as the posterior mean, with the posterior SD as SE.

        Uses the 2PL IRT model:
            P(theta) = 1 / (1 + exp(-a * (theta - b)))

        Args:
            responses: Item responses with their IRT parameters.

        Returns:
            Tuple of (theta_estimate, standard_error). The prior's mean and
            SD when there are no responses.

        Raises:
            ValueError: If any discrimination parameter is not positive.
        """
        if not responses:
            return (self.prior.mean, self.prior.sd)

        for i, r in enumerate(responses):
            if r.irt_discrimination <= 0:
                raise ValueError(
                    f"Discrimination parameter must be positive, "
                    f"got {r.irt_discrimination} for response {i}"
                )

        theta_points = self.theta_points

        # log N(theta | mu, sigma^2), constant term dropped (cancels on normalization)
        variance = self.prior.sd**2
        log_posteriors = [
            -((theta - self.prior.mean) ** 2) / (2.0 * variance) + log_lik
            for theta, log_lik in zip(
                theta_points, _log_likelihoods(theta_points, responses)
            )
        ]

        # Normalize with log-sum-exp for numerical stability
        max_log_post = max(log_posteriors)
        weights = [math.exp(lp - max_log_post) for lp in log_posteriors]
        total = sum(weights)
        if total == 0.0:
            logger.warning(
                "Posterior collapsed to zero at all quadrature points. "
                "Returning prior estimate."
            )
            return (self.prior.mean, self.prior.sd)

        probs = [w / total for w in weights]
        theta_hat = sum(theta * p for theta, p in zip(theta_points, probs))
        posterior_variance = sum(
            (theta - theta_hat) ** 2 * p for theta, p in zip(theta_points, probs)
        )
        return (theta_hat, math.sqrt(posterior_variance))


def log_response_probabilities_2pl(
    theta: float, discrimination: float, difficulty: float
) -> Tuple[float, float]:
    """
    Log-probabilities of a correct and an incorrect 2PL response.

    Computed with a numerically stable log-sigmoid so extreme logits neither
    overflow nor underflow.

    Returns:
        Tuple of (log P(correct), log P(incorrect)).
    """
    logit = discrimination * (theta - difficulty)
    if logit >= 0:
        log_1_plus_exp = math.log1p(math.exp(-logit))
        return (-log_1_plus_exp, -logit - log_1_plus_exp)
    log_1_plus_exp = math.log1p(math.exp(logit))
    return (logit - log_1_plus_exp, -log_1_plus_exp)


def _log_likelihoods(
    theta_points: Sequence[float],
    responses: Sequence[ItemResponse],
) -> List[float]:
    """Log-likelihood of the whole response vector at each quadrature point."""
    log_likelihoods = []
    for theta in theta_points:
        log_lik = 0.0
        for r in responses:
            log_correct, log_incorrect = log_response_probabilities_2pl(
                theta, r.irt_discrimination, r.irt_difficulty
            )
            log_lik += log_correct if r.is_correct else log_incorrect
        log_likelihoods.append(log_lik)
    return log_likelihoods
