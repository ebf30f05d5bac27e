"""
Ability trackers and the persistent tracker chain.

A tracker observes the evolution of a testee's ability over a session. Any
number of independent trackers can observe one session: they are folded
into a single chain, and notifying the chain notifies every tracker in
order.

The chain is a closed set of three immutable node kinds:

    NullAbilityTracker          empty chain (the shared NULL_TRACKER)
    TrackerLeaf(t)              exactly one tracker
    ConsAbilityTracker(t, rest) one tracker followed by a non-empty rest

Chains are built bottom-up and never mutated; concatenation shares the
right-hand chain instead of copying it.
"""

import abc
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator, List, Optional, Sequence, Tuple

from catrules.config import get_settings
from catrules.config_base import Capability

if TYPE_CHECKING:
    from catrules.ability_estimation import AbilityEstimator
    from catrules.responses import TrackedResponses

logger = logging.getLogger(__name__)


class AbilityTracker(Capability):
    """Capability: observes ability estimates as responses arrive."""

    component_name = "ability_tracker"

    @abc.abstractmethod
    def track(self, tracked_responses: "TrackedResponses") -> None:
        """Observe the response history after a new response was recorded."""

    def current_estimate(
        self, tracked_responses: "TrackedResponses"
    ) -> Optional[Tuple[float, float]]:
        """
        Latest (theta, se) for exactly this response history, if known.

        None when the tracker keeps no estimate or its latest one was taken
        for another history or an earlier point of this one.
        """
        return None

    @classmethod
    def default(
        cls, ingredients: Sequence[Any], **bindings: Any
    ) -> Optional["AbilityTracker"]:
        """Fall back to the empty chain unless a tracker is required."""
        if get_settings().REQUIRE_ABILITY_TRACKER:
            return None
        return NULL_TRACKER


class TrackerChain(AbilityTracker):
    """Base for the three chain node kinds."""

    @abc.abstractmethod
    def __iter__(self) -> Iterator[AbilityTracker]:
        """Yield the concrete trackers head to tail."""

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def track(self, tracked_responses: "TrackedResponses") -> None:
        for tracker in self:
            tracker.track(tracked_responses)


class NullAbilityTracker(TrackerChain):
    """The empty chain. There is exactly one instance, ``NULL_TRACKER``."""

    _instance: Optional["NullAbilityTracker"] = None

    def __new__(cls) -> "NullAbilityTracker":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __iter__(self) -> Iterator[AbilityTracker]:
        return iter(())

    def __len__(self) -> int:
        return 0

    def track(self, tracked_responses: "TrackedResponses") -> None:
        pass

    def __repr__(self) -> str:
        return "NullAbilityTracker()"


NULL_TRACKER = NullAbilityTracker()


def _check_concrete(tracker: Any) -> None:
    if not isinstance(tracker, AbilityTracker):
        raise TypeError(f"Expected an AbilityTracker, got {type(tracker).__name__}")
    if isinstance(tracker, TrackerChain):
        raise TypeError(
            f"Chain nodes cannot be nested as chain elements, "
            f"got {type(tracker).__name__}"
        )


@dataclass(frozen=True)
class TrackerLeaf(TrackerChain):
    """A chain holding exactly one concrete tracker."""

    tracker: AbilityTracker

    def __post_init__(self) -> None:
        _check_concrete(self.tracker)

    def __iter__(self) -> Iterator[AbilityTracker]:
        yield self.tracker


@dataclass(frozen=True)
class ConsAbilityTracker(TrackerChain):
    """A concrete tracker followed by the rest of a non-empty chain."""

    tracker: AbilityTracker
    rest: TrackerChain

    def __post_init__(self) -> None:
        _check_concrete(self.tracker)
        if not isinstance(self.rest, (TrackerLeaf, ConsAbilityTracker)):
            raise TypeError(
                f"rest must be a non-empty chain, got {type(self.rest).__name__}"
            )

    def __iter__(self) -> Iterator[AbilityTracker]:
        node: TrackerChain = self
        while isinstance(node, ConsAbilityTracker):
            yield node.tracker
            node = node.rest
        yield from node


def as_chain(tracker: AbilityTracker) -> TrackerChain:
    """Chain nodes are returned unchanged; a concrete tracker becomes a leaf."""
    if isinstance(tracker, TrackerChain):
        return tracker
    return TrackerLeaf(tracker)


def concat(left: TrackerChain, right: TrackerChain) -> TrackerChain:
    """
    Concatenate two chains, ``left`` first.

    The empty chain is a left and right identity. Neither input is modified;
    the result shares ``right``.
    """
    if left is NULL_TRACKER:
        return right
    if right is NULL_TRACKER:
        return left
    node = right
    for tracker in reversed(list(left)):
        node = ConsAbilityTracker(tracker, node)
    return node


def chain_trackers(*trackers: AbilityTracker) -> TrackerChain:
    """Build one chain from trackers or chains, preserving argument order."""
    node: TrackerChain = NULL_TRACKER
    for tracker in reversed(trackers):
        node = concat(as_chain(tracker), node)
    return node


@dataclass(eq=False)
class ThetaHistoryTracker(AbilityTracker):
    """
    Records the ability estimate after every response.

    Pass the class itself as an ingredient to have it built around the
    resolved ability estimator. One tracker may observe several testees in
    turn; ``current_estimate`` only answers for the history it saw last.
    """

    ability_estimator: "AbilityEstimator"
    history: List[Tuple[float, float]] = field(default_factory=list)
    _last_seen: Optional["TrackedResponses"] = field(
        default=None, init=False, repr=False
    )
    _last_seen_count: int = field(default=0, init=False, repr=False)

    @classmethod
    def build_from(
        cls, ingredients: Sequence[Any], **bindings: Any
    ) -> Optional["ThetaHistoryTracker"]:
        ability_estimator = bindings.get("ability_estimator")
        if ability_estimator is None:
            return None
        return cls(ability_estimator=ability_estimator)

    def track(self, tracked_responses: "TrackedResponses") -> None:
        theta, se = self.ability_estimator.estimate(tracked_responses.responses)
        self.history.append((theta, se))
        self._last_seen = tracked_responses
        self._last_seen_count = len(tracked_responses)
        logger.debug(
            f"Tracked response #{len(tracked_responses)}: "
            f"theta={theta:.3f}, SE={se:.3f}"
        )

    def current_estimate(
        self, tracked_responses: "TrackedResponses"
    ) -> Optional[Tuple[float, float]]:
        if not self.history or self._last_seen is not tracked_responses:
            return None
        if self._last_seen_count != len(tracked_responses):
            return None
        return self.history[-1]

    @property
    def thetas(self) -> List[float]:
        return [theta for theta, _ in self.history]

    def reset(self) -> None:
        """Forget the recorded history, e.g. between simulated testees."""
        self.history.clear()
        self._last_seen = None
        self._last_seen_count = 0
