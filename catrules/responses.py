"""
Response records shared by the estimators, trackers and item rules.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol, Set, runtime_checkable

from catrules.trackers import NULL_TRACKER, AbilityTracker


@runtime_checkable
class CalibratedItem(Protocol):
    """Protocol for pool items with calibrated 2PL parameters."""

    @property
    def id(self) -> int:
        ...

    @property
    def irt_discrimination(self) -> Optional[float]:
        ...

    @property
    def irt_difficulty(self) -> Optional[float]:
        ...


@dataclass(frozen=True)
class ItemResponse:
    """Single item response during a CAT session."""

    item_index: int
    item_label: Any
    response: int  # 1 = correct, 0 = incorrect
    irt_discrimination: float  # a parameter
    irt_difficulty: float  # b parameter

    @property
    def is_correct(self) -> bool:
        return self.response > 0

    @classmethod
    def for_item(
        cls, item: CalibratedItem, response: int, label: Any = None
    ) -> "ItemResponse":
        """Record ``response`` to a calibrated pool item."""
        if item.irt_discrimination is None or item.irt_difficulty is None:
            raise ValueError(f"Item {item.id} has no calibrated IRT parameters")
        return cls(
            item_index=item.id,
            item_label=label,
            response=response,
            irt_discrimination=item.irt_discrimination,
            irt_difficulty=item.irt_difficulty,
        )


@dataclass
class TrackedResponses:
    """
    Response history of one testee, observed by an ability tracker.

    Every ``add`` notifies ``ability_tracker`` (typically the composite chain
    from ``CatRules.ability_tracker``) with the updated history.
    """

    ability_tracker: AbilityTracker = NULL_TRACKER
    responses: List[ItemResponse] = field(default_factory=list)

    def add(self, response: ItemResponse) -> None:
        self.responses.append(response)
        self.ability_tracker.track(self)

    @property
    def administered(self) -> Set[int]:
        return {r.item_index for r in self.responses}

    def __len__(self) -> int:
        return len(self.responses)
