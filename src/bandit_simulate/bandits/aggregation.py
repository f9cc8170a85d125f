"""Monte Carlo reductions over replica simulation runs.

A batch is a collection of R replica result sequences. Every reduction first
truncates each replica to a horizon T and then works on (R, T) arrays, so the
inputs may be lists or the lazy sequences produced by the simulation module.
Nothing here touches strategy or registry state.
"""

from collections import Counter
from collections.abc import Callable, Hashable, Iterable, Sequence
from itertools import islice

import numpy as np
from loguru import logger

from ..constants import DEFAULT_REPLICATIONS, DEFAULT_SEED, DEFAULT_TIME_HORIZON
from ..exceptions import ConfigurationError
from .simulation import SimulationResult


def truncate(
    batch: Iterable[Iterable[SimulationResult]], horizon: int
) -> list[list[SimulationResult]]:
    """Take the first ``horizon`` results of every replica.

    Raises
    ------
    ConfigurationError
        If the horizon is not positive, the batch is empty, or a replica
        holds fewer than ``horizon`` results.
    """
    if horizon < 1:
        raise ConfigurationError(f"horizon must be >= 1, got {horizon}")
    replicas = [list(islice(results, horizon)) for results in batch]
    if not replicas:
        raise ConfigurationError("Cannot aggregate an empty batch")
    for r, results in enumerate(replicas):
        if len(results) < horizon:
            raise ConfigurationError(
                f"Replica {r} has {len(results)} results, fewer than horizon {horizon}"
            )
    return replicas


def cumulative_rewards(
    batch: Iterable[Iterable[SimulationResult]], horizon: int
) -> np.ndarray:
    """Cumulative reward per replica and step.

    Returns
    -------
    np.ndarray, shape (R, T)
        Element [r, t - 1] is the cumulative reward of replica r at step t.
    """
    replicas = truncate(batch, horizon)
    return np.array(
        [[result.cumulative_reward for result in results] for results in replicas],
        dtype=float,
    )


def mean_cumulative_reward(
    batch: Iterable[Iterable[SimulationResult]], horizon: int
) -> np.ndarray:
    """Mean cumulative reward across replicas at each step.

    Returns
    -------
    np.ndarray, shape (T,)
        Convergence curve; element t - 1 belongs to step t.
    """
    return cumulative_rewards(batch, horizon).mean(axis=0)


def terminal_cumulative_rewards(
    batch: Iterable[Iterable[SimulationResult]], horizon: int
) -> np.ndarray:
    """Cumulative reward of every replica at step ``horizon``.

    Returns
    -------
    np.ndarray, shape (R,)
    """
    return cumulative_rewards(batch, horizon)[:, -1]


def cumulative_regret(
    batch: Iterable[Iterable[SimulationResult]], horizon: int, best_mean: float
) -> np.ndarray:
    """Mean cumulative regret against always pulling the best arm.

    Regret at step t is t * best_mean minus the mean cumulative reward.

    Parameters
    ----------
    batch : Iterable[Iterable[SimulationResult]]
        Replica result sequences.
    horizon : int
        Number of steps T.
    best_mean : float
        Expected reward of the best arm, e.g. ``environment.best_mean``.

    Returns
    -------
    np.ndarray, shape (T,)
    """
    steps = np.arange(1, horizon + 1, dtype=float)
    return steps * best_mean - mean_cumulative_reward(batch, horizon)


def pull_counts(
    batch: Iterable[Iterable[SimulationResult]], horizon: int
) -> dict[Hashable, np.ndarray]:
    """Number of pulls of each arm per replica.

    For chained results, where ``pulled`` is a tuple, the key is the tuple of
    arm names pulled together.

    Returns
    -------
    dict[Hashable, np.ndarray]
        Arm name to an array of shape (R,), in order of first appearance.
    """
    replicas = truncate(batch, horizon)
    counters = [Counter(result.pulled for result in results) for results in replicas]
    arms = list(dict.fromkeys(arm for counter in counters for arm in counter))
    return {
        arm: np.array([counter[arm] for counter in counters], dtype=np.int64)
        for arm in arms
    }


def run_replicas(
    make_sequence: Callable[[np.random.Generator], Iterable[SimulationResult]],
    replications: int = DEFAULT_REPLICATIONS,
    horizon: int = DEFAULT_TIME_HORIZON,
    seed: int | None = DEFAULT_SEED,
) -> list[list[SimulationResult]]:
    """Run independent replicas of a simulation.

    Each replica receives its own generator spawned from one
    ``np.random.SeedSequence``, so replicas share no randomness stream and
    the whole batch is reproducible from ``seed``.

    Parameters
    ----------
    make_sequence : Callable[[np.random.Generator], Iterable[SimulationResult]]
        Builds the (possibly unbounded) result sequence of one replica. It
        should construct its strategy and environment from the generator it
        is given.
    replications : int, default=100
        Number of replicas R (must be >= 1).
    horizon : int, default=1_000
        Number of steps per replica.
    seed : int | None, default=42
        Root seed.

    Returns
    -------
    list[list[SimulationResult]]
        R result lists of length ``horizon``.

    Examples
    --------
    >>> from bandit_simulate.bandits.distributions import BernoulliRewards
    >>> from bandit_simulate.bandits.policies import EpsilonGreedy
    >>> from bandit_simulate.bandits.simulation import simulation_sequence
    >>> def replica(rng):
    ...     env = BernoulliRewards({"a": 0.1, "b": 0.9}, rng=rng)
    ...     policy = EpsilonGreedy(epsilon=0.1, rng=rng)
    ...     states = simulation_sequence(env, policy, policy.initialize(["a", "b"]))
    ...     return (state.result for state in states)
    >>> batch = run_replicas(replica, replications=10, horizon=50)
    >>> mean_cumulative_reward(batch, 50).shape
    (50,)
    """
    if replications < 1:
        raise ConfigurationError("The number of replications must be >= 1")
    logger.info(f"Running {replications} replicas to horizon {horizon}")
    children = np.random.SeedSequence(seed).spawn(replications)
    return truncate(
        (make_sequence(np.random.default_rng(child)) for child in children), horizon
    )


def summarize(
    batch: Sequence[Sequence[SimulationResult]], horizon: int
) -> dict[str, float]:
    """Scalar summary of the terminal cumulative rewards of a batch."""
    terminal = terminal_cumulative_rewards(batch, horizon)
    return {
        "replications": float(len(terminal)),
        "horizon": float(horizon),
        "mean": float(terminal.mean()),
        "std": float(terminal.std(ddof=1)) if len(terminal) > 1 else 0.0,
        "min": float(terminal.min()),
        "max": float(terminal.max()),
    }
