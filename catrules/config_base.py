"""
Capability roles and the type-directed component locator.

A CAT configuration is assembled from an unordered list of "ingredients":
already-built components, concrete component classes, and plain values such
as an ability prior. Each role in the configuration (ability estimator,
ability tracker, item criterion, next-item rule, termination condition) is a
capability base class. ``locate`` resolves a capability from the ingredients:

1. The first ingredient that is already an instance of the capability is
   returned unchanged.
2. Otherwise the capability builds a default instance through
   ``Capability.from_ingredients``: concrete classes given as ingredients are
   asked first, then every variant registered with ``registry``, then the
   capability's ``default``.
3. If nothing can be built, ``locate`` returns None.

Usage:
    from catrules.config_base import locate
    from catrules.ability_estimation import AbilityEstimator

    estimator = locate(AbilityEstimator, [AbilityPrior(0.0, 1.0), ...])
"""

import abc
import dataclasses
import logging
from typing import Any, ClassVar, List, Optional, Sequence, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

CapabilityT = TypeVar("CapabilityT", bound="Capability")


class CatConfigurationError(Exception):
    """Base class for errors raised while assembling a CAT configuration."""

    pass


class ConfigurationMissing(CatConfigurationError):
    """Raised when a required component can neither be found nor built."""

    def __init__(self, component: str, ingredients: Sequence[Any] = ()):
        self.component = component
        self.ingredients = tuple(ingredients)
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        described = ", ".join(describe_ingredient(i) for i in self.ingredients)
        return (
            f"Could not find or build a {self.component} "
            f"from ingredients [{described}]"
        )


def describe_ingredient(value: Any) -> str:
    """Short name of an ingredient for log and error messages."""
    if isinstance(value, type):
        return f"<class {value.__name__}>"
    return type(value).__name__


class CatConfigBase:
    """
    A composite configuration object.

    Composite configurations expose an ordered list of named sub-values via
    ``children``. Tracker composition walks these recursively, so the order
    returned here is the order in which nested trackers are notified.
    Dataclass composites get their declared field order for free; other
    composites must override ``children``.
    """

    def children(self) -> List[Tuple[str, Any]]:
        if dataclasses.is_dataclass(self):
            return [
                (f.name, getattr(self, f.name)) for f in dataclasses.fields(self)
            ]
        return []


class VariantRegistry:
    """Ordered registry of concrete variants that can build themselves."""

    def __init__(self) -> None:
        self._variants: List[type] = []

    def register(self, variant: Type[CapabilityT]) -> Type[CapabilityT]:
        """Class decorator adding ``variant`` to the automatic build order."""
        if not issubclass(variant, Capability):
            raise TypeError(f"{variant.__name__} is not a Capability")
        if variant not in self._variants:
            self._variants.append(variant)
        return variant

    def variants(self, capability: type) -> List[type]:
        """Registered variants satisfying ``capability``, in registration order."""
        return [v for v in self._variants if issubclass(v, capability)]


registry = VariantRegistry()


class Capability(abc.ABC):
    """
    Base for every configuration role.

    Subclasses that define a role set ``component_name``, which names the
    role in ``ConfigurationMissing`` errors.
    """

    component_name: ClassVar[str] = "component"

    @classmethod
    def build_from(
        cls: Type[CapabilityT], ingredients: Sequence[Any], **bindings: Any
    ) -> Optional[CapabilityT]:
        """
        Build an instance of this class from ingredients and bindings.

        Concrete variants override this. Returns None when the ingredients
        do not contain what the variant needs.
        """
        return None

    @classmethod
    def default(
        cls: Type[CapabilityT], ingredients: Sequence[Any], **bindings: Any
    ) -> Optional[CapabilityT]:
        """Fallback when no variant could be built. None means no default."""
        return None

    @classmethod
    def from_ingredients(
        cls: Type[CapabilityT], ingredients: Sequence[Any], **bindings: Any
    ) -> Optional[CapabilityT]:
        """
        Construct an instance of this capability from the ingredients.

        Args:
            ingredients: The caller's ingredient list.
            **bindings: Already-resolved dependencies, e.g. ``ability_estimator``.

        Returns:
            A new instance, or None if no variant applies.
        """
        for ingredient in ingredients:
            if isinstance(ingredient, type) and issubclass(ingredient, cls):
                built = ingredient.build_from(ingredients, **bindings)
                if built is not None:
                    return built

        for variant in registry.variants(cls):
            built = variant.build_from(ingredients, **bindings)
            if built is not None:
                return built

        return cls.default(ingredients, **bindings)


def locate(
    capability: Type[CapabilityT],
    ingredients: Sequence[Any],
    **bindings: Any,
) -> Optional[CapabilityT]:
    """
    Find or build a component satisfying ``capability``.

    An ingredient that already satisfies the capability is returned as-is and
    takes priority over construction.

    Args:
        capability: The capability class to resolve.
        ingredients: Arbitrary ordered ingredient values.
        **bindings: Already-resolved dependencies passed to constructors.

    Returns:
        The located or constructed component, or None if neither is possible.
    """
    for ingredient in ingredients:
        if isinstance(ingredient, capability):
            logger.debug(
                f"Located {capability.__name__}: using supplied "
                f"{describe_ingredient(ingredient)}"
            )
            return ingredient

    built = capability.from_ingredients(ingredients, **bindings)
    if built is None:
        logger.debug(
            f"Could not locate {capability.__name__} among "
            f"{len(ingredients)} ingredients"
        )
    else:
        logger.debug(
            f"Built {capability.__name__}: {describe_ingredient(built)} "
            f"(bindings: {sorted(bindings)})"
        )
    return built
