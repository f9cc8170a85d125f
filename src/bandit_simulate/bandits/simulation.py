"""Step-by-step simulation of a strategy against a reward model.

A simulation is a sequence of immutable states. Each step is a pure
function of the previous state, the strategy and the environment (together
with the random number generators they carry):

1. the strategy selects an arm from the registry,
2. the environment samples a reward for that arm,
3. the strategy updates the pulled arm with the reward,
4. the arm is merged into a new registry,
5. a new ``SimulationResult`` is derived from the previous one.

``simulation_sequence`` exposes this as an unbounded generator. It cannot be
rewound; build a new one from the initial registry to start again. ``run``
consumes it to a fixed horizon.

Chained bandits step several stages together per tick, e.g. a home page
variant followed by a results page variant. Every stage selects and observes
its own outcome, the outcomes are combined into a single shared reward (by
default their product, i.e. "conversion requires success at every stage"),
and every stage's registry is updated with that shared reward. When the
reward depends on the combination of arms rather than on each stage alone,
pass a ``joint`` reward model keyed by the joined arm names instead of the
per-stage environments (see ``join_names`` and ``combinatorial_arms``).

Examples
--------
>>> import numpy as np
>>> from bandit_simulate.bandits.distributions import BernoulliRewards
>>> from bandit_simulate.bandits.policies import UCB1
>>> env = BernoulliRewards({"a": 0.1, "b": 0.9}, rng=np.random.default_rng(1))
>>> policy = UCB1()
>>> results = run(env, policy, policy.initialize(["a", "b"]), horizon=100)
>>> results[-1].t
100
"""

import math
from collections import deque
from collections.abc import Callable, Hashable, Iterator, Sequence
from dataclasses import dataclass
from itertools import islice

from loguru import logger

from ..exceptions import ConfigurationError
from .arms import ArmRegistry, merge, pull
from .distributions import RewardModel, join_names
from .policies.strategies import SelectionStrategy


@dataclass(frozen=True)
class SimulationResult:
    """Outcome of a single simulation step.

    Parameters
    ----------
    pulled : Hashable | tuple | None
        Selected arm name, or a tuple of names for chained bandits. None only
        for the seed result before the first step.
    reward : float
        Reward observed at this step.
    t : int
        Step index, starting at 1.
    cumulative_reward : float
        Sum of rewards through step t.
    """

    pulled: Hashable | tuple | None
    reward: float
    t: int
    cumulative_reward: float

    def advance(self, pulled: Hashable | tuple, reward: float) -> "SimulationResult":
        """Derive the result of the next step."""
        return SimulationResult(
            pulled=pulled,
            reward=reward,
            t=self.t + 1,
            cumulative_reward=self.cumulative_reward + reward,
        )


#: Result preceding the first step of every run.
INITIAL_RESULT = SimulationResult(pulled=None, reward=0, t=0, cumulative_reward=0)


@dataclass(frozen=True)
class SimulationState:
    """Registry snapshot together with the latest result."""

    registry: ArmRegistry
    result: SimulationResult = INITIAL_RESULT


@dataclass(frozen=True)
class ChainedState:
    """Registry snapshots of every stage together with the latest result."""

    registries: tuple[ArmRegistry, ...]
    result: SimulationResult = INITIAL_RESULT


def _as_state(initial: ArmRegistry | SimulationState) -> SimulationState:
    if isinstance(initial, SimulationState):
        return initial
    if isinstance(initial, ArmRegistry):
        return SimulationState(registry=initial)
    raise TypeError(f"Expected ArmRegistry or SimulationState, got {type(initial)}")


def _check_horizon(horizon: int) -> None:
    if horizon < 0:
        raise ConfigurationError(f"horizon must be non-negative, got {horizon}")


def step(
    environment: RewardModel,
    strategy: SelectionStrategy,
    state: SimulationState,
) -> tuple[SimulationState, SimulationResult]:
    """Advance a simulation by one pull.

    Parameters
    ----------
    environment : RewardModel
        Source of rewards.
    strategy : SelectionStrategy
        Strategy selecting and updating arms.
    state : SimulationState
        Current registry and latest result.

    Returns
    -------
    tuple[SimulationState, SimulationResult]
        The next state and the result it carries.

    Raises
    ------
    ConfigurationError
        If the registry is empty or the environment has no reward for the
        selected arm.
    """
    registry = state.registry
    arm_id = strategy.select(registry)
    reward = environment.sample(arm_id)
    updated = strategy.update(pull(registry[arm_id]), reward, registry)
    result = state.result.advance(arm_id, reward)
    return SimulationState(registry=merge(updated, registry), result=result), result


def simulation_sequence(
    environment: RewardModel,
    strategy: SelectionStrategy,
    initial: ArmRegistry | SimulationState,
) -> Iterator[SimulationState]:
    """Unbounded sequence of simulation states, one per step.

    The initial state itself is not yielded; the first item has ``t == 1``.
    The number of items taken is the horizon.
    """
    state = _as_state(initial)
    while True:
        state, _ = step(environment, strategy, state)
        yield state


def run(
    environment: RewardModel,
    strategy: SelectionStrategy,
    initial_state: ArmRegistry | SimulationState,
    horizon: int,
) -> list[SimulationResult]:
    """Run a simulation to ``horizon`` and return its results.

    Parameters
    ----------
    environment : RewardModel
        Source of rewards.
    strategy : SelectionStrategy
        Strategy selecting and updating arms.
    initial_state : ArmRegistry | SimulationState
        Starting registry, optionally with a previous result to continue from.
    horizon : int
        Number of steps to take.

    Returns
    -------
    list[SimulationResult]
        One result per step, in order.
    """
    _check_horizon(horizon)
    logger.debug(f"Running {strategy!r} against {environment!r} to horizon {horizon}")
    states = simulation_sequence(environment, strategy, initial_state)
    return [state.result for state in islice(states, horizon)]


def run_to_state(
    environment: RewardModel,
    strategy: SelectionStrategy,
    initial_state: ArmRegistry | SimulationState,
    horizon: int,
) -> SimulationState:
    """Run a simulation to ``horizon`` and return only the final state."""
    _check_horizon(horizon)
    state = _as_state(initial_state)
    last = deque(islice(simulation_sequence(environment, strategy, state), horizon), maxlen=1)
    return last[0] if last else state


def product(rewards: Sequence[float]) -> float:
    """Multiply stage rewards. For 0/1 rewards this is a logical AND."""
    return math.prod(rewards)


def logical_and(rewards: Sequence[float]) -> float:
    """1.0 if every stage reward is positive, else 0.0."""
    return 1.0 if all(reward > 0 for reward in rewards) else 0.0


def _check_stages(
    environments: Sequence[RewardModel] | None,
    strategies: Sequence[SelectionStrategy],
    registries: Sequence[ArmRegistry],
    joint: RewardModel | None = None,
) -> None:
    if not registries:
        raise ConfigurationError("A chained bandit needs at least one stage")
    if (environments is None) == (joint is None):
        raise ConfigurationError("Pass either stage environments or a joint environment")
    if joint is not None:
        if len(strategies) != len(registries):
            raise ConfigurationError(
                f"Stage counts differ: {len(strategies)} strategies, "
                f"{len(registries)} registries"
            )
        return
    if not len(environments) == len(strategies) == len(registries):
        raise ConfigurationError(
            f"Stage counts differ: {len(environments)} environments, "
            f"{len(strategies)} strategies, {len(registries)} registries"
        )


def chained_step(
    environments: Sequence[RewardModel] | None,
    strategies: Sequence[SelectionStrategy],
    state: ChainedState,
    combine: Callable[[Sequence[float]], float] = product,
    joint: RewardModel | None = None,
    sep: str = "-",
) -> tuple[ChainedState, SimulationResult]:
    """Advance a chained bandit by one tick.

    Parameters
    ----------
    environments : Sequence[RewardModel] | None
        Reward model per stage. None when ``joint`` is given.
    strategies : Sequence[SelectionStrategy]
        Strategy per stage.
    state : ChainedState
        Registry per stage and latest result.
    combine : Callable[[Sequence[float]], float], default=product
        Reduces the stage outcomes into the shared reward.
    joint : RewardModel | None, default=None
        Reward model over arm combinations, sampled with the stage arm names
        joined by ``sep``. Replaces ``environments`` and ``combine``.
    sep : str, default="-"
        Separator used to join the stage arm names for ``joint``.

    Returns
    -------
    tuple[ChainedState, SimulationResult]
        The next state and its result; ``pulled`` is a tuple of arm names,
        one per stage.

    Raises
    ------
    ConfigurationError
        If the number of stages differs between the arguments, if neither or
        both of ``environments`` and ``joint`` are given, or if a reward model
        has no reward for the selected arm or combination.
    """
    _check_stages(environments, strategies, state.registries, joint)

    arm_ids = tuple(
        strategy.select(registry)
        for strategy, registry in zip(strategies, state.registries)
    )
    if joint is not None:
        reward = joint.sample(join_names(*arm_ids, sep=sep))
    else:
        outcomes = [env.sample(arm_id) for env, arm_id in zip(environments, arm_ids)]
        reward = combine(outcomes)

    registries = tuple(
        merge(strategy.update(pull(registry[arm_id]), reward, registry), registry)
        for strategy, registry, arm_id in zip(strategies, state.registries, arm_ids)
    )
    result = state.result.advance(arm_ids, reward)
    return ChainedState(registries=registries, result=result), result


def chained_sequence(
    environments: Sequence[RewardModel] | None,
    strategies: Sequence[SelectionStrategy],
    initial: Sequence[ArmRegistry] | ChainedState,
    combine: Callable[[Sequence[float]], float] = product,
    joint: RewardModel | None = None,
    sep: str = "-",
) -> Iterator[ChainedState]:
    """Unbounded sequence of chained states, one per tick."""
    state = initial if isinstance(initial, ChainedState) else ChainedState(tuple(initial))
    _check_stages(environments, strategies, state.registries, joint)
    while True:
        state, _ = chained_step(environments, strategies, state, combine, joint, sep)
        yield state


def run_chained(
    environments: Sequence[RewardModel] | None,
    strategies: Sequence[SelectionStrategy],
    initial_state: Sequence[ArmRegistry] | ChainedState,
    horizon: int,
    combine: Callable[[Sequence[float]], float] = product,
    joint: RewardModel | None = None,
    sep: str = "-",
) -> list[SimulationResult]:
    """Run a chained bandit to ``horizon`` and return its results.

    See ``chained_step`` for the meaning of ``combine``, ``joint`` and ``sep``.
    """
    _check_horizon(horizon)
    logger.debug(f"Running chained bandit with {len(strategies)} stages to horizon {horizon}")
    states = chained_sequence(environments, strategies, initial_state, combine, joint, sep)
    return [state.result for state in islice(states, horizon)]
