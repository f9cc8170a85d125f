"""Reward models (environments) for bandit simulations.

A reward model maps an arm name to a stochastic reward through a single
method, ``sample(arm_id)``. Models own the random number generator they draw
from, so a simulation is reproducible once both the strategy and the
environment are built from seeded generators.

This module also builds joint arm names for the combinatorial methodology,
where a multi-stage experiment is run as one flat bandit over every
combination of stage variants.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable, Iterable, Mapping
from itertools import product

import numpy as np
from loguru import logger

from ..constants import FLOAT_TOL
from ..exceptions import ConfigurationError, DomainError


class RewardModel(ABC):
    """Abstract base class for reward models.

    Parameters
    ----------
    arm_ids : Iterable[Hashable]
        Arms the model can sample rewards for.
    rng : np.random.Generator | None, default=None
        Random number generator for reproducibility.

    Raises
    ------
    TypeError
        If rng is not None and not a np.random.Generator.
    ValueError
        If no arms are given.
    """

    def __init__(
        self, arm_ids: Iterable[Hashable], rng: np.random.Generator | None = None
    ) -> None:
        self.arm_ids = tuple(arm_ids)
        if not self.arm_ids:
            raise ValueError("A reward model needs at least one arm")
        self._index = {arm_id: k for k, arm_id in enumerate(self.arm_ids)}
        self.K = len(self.arm_ids)

        if rng is not None and not isinstance(rng, np.random.Generator):
            raise TypeError(f"rng must be np.random.Generator, got {type(rng)}")
        self.rng = rng or np.random.default_rng()
        logger.debug(f"Initialized {self!r}")

    def _arm_index(self, arm_id: Hashable) -> int:
        try:
            return self._index[arm_id]
        except KeyError:
            raise ConfigurationError(f"No reward defined for arm {arm_id!r}") from None

    def __contains__(self, arm_id: object) -> bool:
        return arm_id in self._index

    @abstractmethod
    def sample(self, arm_id: Hashable) -> float:
        """Sample a reward for the given arm.

        Parameters
        ----------
        arm_id : Hashable
            Arm name.

        Returns
        -------
        float
            Sampled reward.

        Raises
        ------
        ConfigurationError
            If the model has no reward for ``arm_id``.
        """


class BernoulliRewards(RewardModel):
    """Bernoulli rewards (binary outcomes: 0 or 1), e.g. conversions.

    Parameters
    ----------
    probs : Mapping[Hashable, float]
        Success probability per arm. Each value must be in [0, 1].
    rng : np.random.Generator | None, default=None
        Random number generator.

    Examples
    --------
    >>> env = BernoulliRewards({"control": 0.1, "variant": 0.12},
    ...                        rng=np.random.default_rng(42))
    >>> env.sample("control") in (0.0, 1.0)
    True
    """

    def __init__(
        self, probs: Mapping[Hashable, float], rng: np.random.Generator | None = None
    ) -> None:
        self.probs = np.asarray(list(probs.values()), dtype=float)
        if not np.all((self.probs >= 0.0) & (self.probs <= 1.0)):
            raise DomainError("All probabilities must be in [0, 1]")
        super().__init__(probs.keys(), rng)

    @property
    def best_mean(self) -> float:
        """Highest expected reward over all arms."""
        return float(self.probs.max())

    def sample(self, arm_id: Hashable) -> float:
        """Draw a single Bernoulli reward."""
        return float(self.rng.binomial(1, self.probs[self._arm_index(arm_id)]))

    def __repr__(self) -> str:
        """Return string representation."""
        return f"BernoulliRewards(probs={dict(zip(self.arm_ids, self.probs.tolist()))})"


class GaussianRewards(RewardModel):
    """Gaussian rewards with per-arm means and variances.

    Parameters
    ----------
    means : Mapping[Hashable, float]
        Mean reward per arm.
    variances : Mapping[Hashable, float] | float, default=1.0
        Variance per arm. If float, same variance used for all arms.
        All variances must be strictly positive.
    rng : np.random.Generator | None, default=None
        Random number generator.
    """

    def __init__(
        self,
        means: Mapping[Hashable, float],
        variances: Mapping[Hashable, float] | float = 1.0,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.means = np.asarray(list(means.values()), dtype=float)
        K = len(self.means)

        if np.isscalar(variances):
            self.variances = np.full(K, float(variances), dtype=float)
        else:
            if set(variances) != set(means):
                raise ValueError(
                    f"Arms of variances {list(variances)} do not match arms of means {list(means)}"
                )
            self.variances = np.asarray([variances[k] for k in means], dtype=float)

        if np.any(self.variances <= FLOAT_TOL):
            raise DomainError("All variances must be strictly positive")
        super().__init__(means.keys(), rng)

    @property
    def best_mean(self) -> float:
        """Highest expected reward over all arms."""
        return float(self.means.max())

    def sample(self, arm_id: Hashable) -> float:
        """Draw a single Gaussian reward."""
        k = self._arm_index(arm_id)
        return float(self.rng.normal(self.means[k], np.sqrt(self.variances[k])))

    def __repr__(self) -> str:
        """Return string representation."""
        return f"GaussianRewards(means={self.means}, variances={self.variances})"


class StudentTRewards(RewardModel):
    """Student's t-distributed rewards with per-arm location.

    Useful for studying robustness to heavy-tailed reward distributions.

    Parameters
    ----------
    means : Mapping[Hashable, float]
        Location parameter (mean) per arm.
    df : float, default=3.0
        Degrees of freedom shared by all arms. Must be strictly positive.
        Lower values give heavier tails.
    rng : np.random.Generator | None, default=None
        Random number generator.
    """

    def __init__(
        self,
        means: Mapping[Hashable, float],
        df: float = 3.0,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.means = np.asarray(list(means.values()), dtype=float)
        if df <= FLOAT_TOL:
            raise DomainError("Degrees of freedom must be strictly positive")
        self.df = float(df)
        super().__init__(means.keys(), rng)

    @property
    def best_mean(self) -> float:
        """Highest expected reward over all arms (finite for df > 1)."""
        return float(self.means.max())

    def sample(self, arm_id: Hashable) -> float:
        """Draw a single Student's t reward."""
        return float(self.means[self._arm_index(arm_id)] + self.rng.standard_t(self.df))

    def __repr__(self) -> str:
        """Return string representation."""
        return f"StudentTRewards(means={self.means}, df={self.df})"


class CallableRewards(RewardModel):
    """Reward model backed by one sampling function per arm.

    Each function is called without arguments and returns a reward. Useful
    for deterministic environments in tests and for rewards that are not
    covered by the parametric models.

    Parameters
    ----------
    samplers : Mapping[Hashable, Callable[[], float]]
        Sampling function per arm.

    Examples
    --------
    >>> env = CallableRewards({"a": lambda: 1.0, "b": lambda: 0.0})
    >>> env.sample("a")
    1.0
    """

    def __init__(self, samplers: Mapping[Hashable, Callable[[], float]]) -> None:
        self.samplers = dict(samplers)
        super().__init__(self.samplers.keys())

    def sample(self, arm_id: Hashable) -> float:
        """Call the sampling function of the arm."""
        self._arm_index(arm_id)
        return self.samplers[arm_id]()

    def __repr__(self) -> str:
        """Return string representation."""
        return f"CallableRewards(arms={list(self.samplers)})"


def join_names(*names: Hashable, sep: str = "-") -> str:
    """Join stage variant names into a single arm name.

    >>> join_names("home-a", "results-b")
    'home-a-results-b'
    """
    return sep.join(str(name) for name in names)


def combinatorial_arms(*layers: Iterable[Hashable], sep: str = "-") -> list[str]:
    """Joint arm names for every combination of one variant per layer.

    Layers are combined in order, so the last layer varies fastest.

    >>> combinatorial_arms(["a", "b"], ["x", "y"])
    ['a-x', 'a-y', 'b-x', 'b-y']
    """
    if not layers:
        raise ConfigurationError("At least one layer is required")
    return [join_names(*combo, sep=sep) for combo in product(*layers)]
