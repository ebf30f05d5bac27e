"""
Pytest configuration and shared fixtures for testing.
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

import pytest

from catrules import config
from catrules.ability_estimation import AbilityEstimator
from catrules.config import Settings
from catrules.config_base import CatConfigBase
from catrules.item_selection import NextItemRule
from catrules.responses import ItemResponse, TrackedResponses
from catrules.stopping_rules import TerminationCondition
from catrules.trackers import AbilityTracker


@dataclass(frozen=True)
class FakeEstimator(AbilityEstimator):
    """Estimator returning a fixed (theta, se)."""

    theta: float = 0.0
    se: float = 1.0

    def estimate(self, responses: Sequence[ItemResponse]) -> Tuple[float, float]:
        return (self.theta, self.se)


@dataclass(eq=False)
class RecordingTracker(AbilityTracker):
    """Tracker appending (name, response count) to a shared log."""

    name: str
    log: List[Tuple[str, int]] = field(default_factory=list)

    def track(self, tracked_responses: TrackedResponses) -> None:
        self.log.append((self.name, len(tracked_responses)))


@dataclass(frozen=True)
class FakeNextItemRule(NextItemRule):
    """Next-item rule that optionally carries a nested tracker."""

    tracker: Optional[AbilityTracker] = None

    def select(self, tracked_responses, item_pool, rng=None):
        administered = tracked_responses.administered
        for item in item_pool:
            if item.id not in administered:
                return item
        return None


@dataclass(frozen=True)
class FakeTermination(TerminationCondition):
    """Termination condition that never stops."""

    def should_stop(self, tracked_responses: TrackedResponses) -> bool:
        return False


@dataclass(frozen=True)
class Triple(CatConfigBase):
    """Composite with three ordered children."""

    first: Any = None
    second: Any = None
    third: Any = None


@dataclass(frozen=True)
class PoolItem:
    """Lightweight calibrated item."""

    id: int
    irt_discrimination: Optional[float]
    irt_difficulty: Optional[float]


@pytest.fixture
def event_log() -> List[Tuple[str, int]]:
    return []


@pytest.fixture
def make_tracker(event_log):
    """Factory for recording trackers sharing one event log."""

    def _make(name: str) -> RecordingTracker:
        return RecordingTracker(name=name, log=event_log)

    return _make


@pytest.fixture
def require_trackers(monkeypatch):
    """Make a missing ability tracker a configuration error."""
    monkeypatch.setattr(config, "settings", Settings(REQUIRE_ABILITY_TRACKER=True))


@pytest.fixture
def item_pool() -> List[PoolItem]:
    """Nine items with difficulties -2..2 in steps of 0.5, equal discrimination."""
    return [
        PoolItem(id=i + 1, irt_discrimination=1.2, irt_difficulty=-2.0 + 0.5 * i)
        for i in range(9)
    ]
