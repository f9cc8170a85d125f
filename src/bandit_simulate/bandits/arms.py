"""Arm state and the ordered registry of arms used by every strategy.

All state here is immutable. Recording a pull or a reward returns a new
``ArmState`` and merging it returns a new ``ArmRegistry``, so a run can be
replayed and independent replicas never share mutable state.

Running Mean
------------
The estimate ``value`` is the exact unweighted arithmetic mean of the rewards
observed for an arm. With ``n`` the pull count *after* the current pull:

- n = 1: value = reward (seeded by the first observation)
- n > 1: value = value * (n - 1) / n + reward / n

The first pull is special-cased so that the recurrence never divides by
``n - 1 == 0``.

Examples
--------
>>> registry = initialize(["control", "variant"])
>>> arm = apply_reward(pull(registry["variant"]), 1.0)
>>> registry = merge(arm, registry)
>>> total_pulls(registry)
1
>>> [a.name for a in unpulled(registry)]
['control']
"""

import math
from collections.abc import Callable, Hashable, Iterable, Iterator
from dataclasses import dataclass, replace

from loguru import logger

from ..exceptions import ConfigurationError


@dataclass(frozen=True)
class ArmState:
    """Statistics tracked for a single arm.

    Parameters
    ----------
    name : Hashable
        Unique identifier of the arm within its registry.
    pulls : int, default=0
        Number of times the arm has been pulled.
    value : float, default=0.0
        Running mean of the observed rewards. Only meaningful once pulls > 0.
    """

    name: Hashable
    pulls: int = 0
    value: float = 0.0


@dataclass(frozen=True)
class Exp3ArmState(ArmState):
    """Arm state carrying the EXP3 selection weight.

    The weight is stored as its natural logarithm. Successful pulls add to
    ``log_weight`` instead of multiplying ``weight``, so long runs never
    overflow.
    """

    log_weight: float = 0.0

    @property
    def weight(self) -> float:
        """Selection weight, ``inf`` once it exceeds the float range."""
        try:
            return math.exp(self.log_weight)
        except OverflowError:
            return math.inf


@dataclass(frozen=True)
class BetaArmState(ArmState):
    """Arm state carrying the parameters of a Beta posterior."""

    alpha: float = 1.0
    beta: float = 1.0


class ArmRegistry:
    """Immutable ordered association of arm name to ``ArmState``.

    Iteration order is fixed when the registry is created and is preserved by
    every ``merge``. Strategies rely on it for cold-start order and for
    deterministic tie-breaking (the first arm in order wins).

    Parameters
    ----------
    arms : Iterable[ArmState]
        Arm states in the desired iteration order. Names must be unique.

    Raises
    ------
    ConfigurationError
        If two arms share a name.
    """

    __slots__ = ("_names", "_arms")

    def __init__(self, arms: Iterable[ArmState] = ()) -> None:
        arms = tuple(arms)
        names = tuple(arm.name for arm in arms)
        lookup = dict(zip(names, arms))
        if len(lookup) != len(names):
            raise ConfigurationError(f"Arm names must be unique, got {names}")
        self._names = names
        self._arms = lookup

    @property
    def names(self) -> tuple:
        """Arm names in iteration order."""
        return self._names

    @property
    def arms(self) -> tuple[ArmState, ...]:
        """Arm states in iteration order."""
        return tuple(self._arms[name] for name in self._names)

    def __getitem__(self, name: Hashable) -> ArmState:
        try:
            return self._arms[name]
        except KeyError:
            raise ConfigurationError(f"Unknown arm {name!r}") from None

    def __contains__(self, name: object) -> bool:
        return name in self._arms

    def __iter__(self) -> Iterator[ArmState]:
        return (self._arms[name] for name in self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ArmRegistry):
            return NotImplemented
        return self.arms == other.arms

    def __hash__(self) -> int:
        return hash(self.arms)

    def _replace(self, arm: ArmState) -> "ArmRegistry":
        new = ArmRegistry.__new__(ArmRegistry)
        new._names = self._names
        new._arms = {**self._arms, arm.name: arm}
        return new

    def __repr__(self) -> str:
        """Return string representation."""
        return f"ArmRegistry({list(self)})"


def initialize(
    arm_names: Iterable[Hashable],
    arm_factory: Callable[[Hashable], ArmState] = ArmState,
    sort: bool = False,
) -> ArmRegistry:
    """Create a registry of fresh arms (all with ``pulls == 0``).

    Parameters
    ----------
    arm_names : Iterable[Hashable]
        Arm identifiers. Must be unique.
    arm_factory : Callable[[Hashable], ArmState], default=ArmState
        Builds the fresh state for a name, e.g. ``Exp3ArmState`` or a
        ``functools.partial`` of ``BetaArmState`` carrying a prior.
    sort : bool, default=False
        If True, order arms lexicographically instead of by insertion.

    Returns
    -------
    ArmRegistry
        New registry.

    Raises
    ------
    ConfigurationError
        If names are not unique.
    """
    names = list(arm_names)
    if sort:
        names = sorted(names)
    registry = ArmRegistry(arm_factory(name) for name in names)
    logger.debug(f"Initialized registry with arms {list(registry.names)}")
    return registry


def pull(arm: ArmState) -> ArmState:
    """Return a copy of ``arm`` with one more pull recorded."""
    return replace(arm, pulls=arm.pulls + 1)


def apply_reward(arm: ArmState, reward: float) -> ArmState:
    """Fold ``reward`` into the running mean of an already pulled arm.

    Raises
    ------
    ConfigurationError
        If the arm has not been pulled yet.
    """
    n = arm.pulls
    if n < 1:
        raise ConfigurationError(
            f"Arm {arm.name!r} must be pulled before a reward is applied"
        )
    if n == 1:
        return replace(arm, value=reward)
    return replace(arm, value=arm.value * ((n - 1) / n) + reward / n)


def merge(arm: ArmState, registry: ArmRegistry) -> ArmRegistry:
    """Return a new registry with the entry for ``arm.name`` replaced.

    Raises
    ------
    ConfigurationError
        If the registry has no arm with that name.
    """
    if arm.name not in registry:
        raise ConfigurationError(f"Cannot merge unknown arm {arm.name!r}")
    return registry._replace(arm)


def total_pulls(registry: ArmRegistry) -> int:
    """Sum of pulls over all arms (the global step counter)."""
    return sum(arm.pulls for arm in registry)


def unpulled(registry: ArmRegistry) -> list[ArmState]:
    """Arms that have never been pulled, in registry order."""
    return [arm for arm in registry if arm.pulls == 0]


def exploit(registry: ArmRegistry, key: Callable[[ArmState], float]) -> ArmState:
    """Return the first arm in registry order maximising ``key``.

    Raises
    ------
    ConfigurationError
        If the registry is empty.
    """
    best = None
    best_score = None
    for arm in registry:
        score = key(arm)
        if best is None or score > best_score:
            best, best_score = arm, score
    if best is None:
        raise ConfigurationError("Cannot select from an empty registry")
    return best
