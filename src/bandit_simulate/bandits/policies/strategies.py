"""Selection strategies for multi-armed bandit problems.

Every strategy works on an immutable ``ArmRegistry``: ``select`` reads it and
returns an arm name, ``update`` receives an arm that has already been pulled
and returns an updated copy. Strategies keep no state besides their
parameters and the injected random number generator, so two strategies built
with equally seeded generators make identical decisions.

Mathematical Background
-----------------------
In the K-armed bandit problem an agent repeatedly selects one of K arms and
observes a reward. Each arm k has an unknown mean reward μ_k. The goal is to
maximise cumulative reward by balancing exploration of uncertain arms with
exploitation of the best-known one.

Strategies
----------
EpsilonGreedy
    Explores uniformly with probability ε, exploits best empirical arm otherwise.

Softmax
    Samples arms with probability proportional to exp(value / τ).

UCB1
    Optimistic index value + sqrt(2 log n / n_k), every arm tried once first.

EXP3
    Exponential weights for adversarial rewards, mixed with uniform exploration.

BayesThompson
    Thompson sampling with Beta posteriors for Bernoulli rewards.

Tie-breaking
------------
Deterministic argmax selections resolve ties in favour of the first arm in
registry order.

References
----------
.. [1] Lattimore, T., & Szepesvári, C. (2020). Bandit algorithms.
       Cambridge University Press.
.. [2] Auer, P., Cesa-Bianchi, N., & Fischer, P. (2002). Finite-time analysis
       of the multiarmed bandit problem. Machine Learning, 47(2-3), 235-256.
.. [3] Auer, P., Cesa-Bianchi, N., Freund, Y., & Schapire, R. E. (2002). The
       nonstochastic multiarmed bandit problem. SIAM J. Comput., 32(1), 48-77.
.. [4] Thompson, W. R. (1933). On the likelihood that one unknown probability
       exceeds another in view of the evidence of two samples. Biometrika, 25(3/4), 285-294.

Examples
--------
>>> import numpy as np
>>> rng = np.random.default_rng(42)
>>> policy = UCB1()
>>> registry = policy.initialize(["a", "b", "c"])
>>> policy.select(registry)  # cold start, first unpulled arm
'a'
"""

import math
from abc import ABC, abstractmethod
from collections.abc import Hashable, Iterable
from dataclasses import replace

import numpy as np
from loguru import logger

from ...constants import DEFAULT_EPSILON, DEFAULT_GAMMA, DEFAULT_TEMPERATURE, FLOAT_TOL
from ...exceptions import ConfigurationError, DomainError
from ..arms import (
    ArmRegistry,
    ArmState,
    BetaArmState,
    Exp3ArmState,
    apply_reward,
    exploit,
    initialize,
    total_pulls,
    unpulled,
)


class SelectionStrategy(ABC):
    """Base class for bandit selection strategies.

    Parameters
    ----------
    rng : np.random.Generator | None, default=None
        Random number generator for reproducibility.

    Raises
    ------
    TypeError
        If rng is not None and not a np.random.Generator.
    """

    #: ArmState subclass the strategy reads and writes.
    arm_type: type[ArmState] = ArmState

    def __init__(self, rng: np.random.Generator | None = None) -> None:
        if rng is not None and not isinstance(rng, np.random.Generator):
            raise TypeError(f"rng must be np.random.Generator, got {type(rng)}")
        self.rng = rng or np.random.default_rng()
        logger.debug(f"Initialized {self!r}")

    def new_arm(self, name: Hashable) -> ArmState:
        """Build the fresh state for an arm called ``name``."""
        return self.arm_type(name)

    def initialize(self, arm_names: Iterable[Hashable], sort: bool = False) -> ArmRegistry:
        """Create a registry of fresh arms of the type this strategy expects."""
        return initialize(arm_names, arm_factory=self.new_arm, sort=sort)

    def _check_registry(self, registry: ArmRegistry) -> None:
        if len(registry) == 0:
            raise ConfigurationError("Cannot select from an empty registry")
        for arm in registry:
            if not isinstance(arm, self.arm_type):
                raise ConfigurationError(
                    f"{self.__class__.__name__} requires {self.arm_type.__name__} "
                    f"arms, got {type(arm).__name__} for {arm.name!r}"
                )

    @staticmethod
    def _cold_start_arm(registry: ArmRegistry) -> Hashable | None:
        """Return the first unpulled arm in registry order, if any.

        Until every arm has a sample, argmax-based strategies pull the
        unpulled arms in order instead of applying their selection rule.
        """
        remaining = unpulled(registry)
        if remaining:
            return remaining[0].name
        return None

    @staticmethod
    def _validate_reward(reward: float) -> None:
        if not np.isfinite(reward):
            raise DomainError(f"Rewards must be finite (no NaN or Inf), got {reward}")

    @abstractmethod
    def select(self, registry: ArmRegistry) -> Hashable:
        """Choose the name of the arm to pull next.

        Parameters
        ----------
        registry : ArmRegistry
            Current state of all arms.

        Returns
        -------
        Hashable
            Name of the selected arm.

        Raises
        ------
        ConfigurationError
            If the registry is empty or holds arms of the wrong type.
        """

    def update(
        self, arm: ArmState, reward: float, registry: ArmRegistry | None = None
    ) -> ArmState:
        """Fold an observed reward into an arm that has just been pulled.

        Parameters
        ----------
        arm : ArmState
            The selected arm, with the current pull already recorded.
        reward : float
            Observed reward.
        registry : ArmRegistry | None, default=None
            Registry the arm was selected from (before the pull). Only needed
            by strategies whose update depends on the other arms.

        Returns
        -------
        ArmState
            Updated copy of ``arm``.
        """
        self._validate_reward(reward)
        logger.trace(f"Update - Arm: {arm.name!r}, Reward: {reward}, Pulls: {arm.pulls}")
        return apply_reward(arm, reward)


class EpsilonGreedy(SelectionStrategy):
    """ε-greedy policy: explore with probability ε, exploit otherwise.

    The policy selects the arm with the highest running mean with probability
    (1 - ε) and a uniformly random arm with probability ε. With ``cold_start``
    every arm is pulled once, in registry order, before the rule applies.

    Parameters
    ----------
    epsilon : float, default=0.1
        Exploration probability in [0, 1].
    cold_start : bool, default=True
        Pull unpulled arms first.
    rng : np.random.Generator | None, default=None
        Random number generator for reproducibility.

    Raises
    ------
    DomainError
        If epsilon not in [0, 1].

    Examples
    --------
    >>> policy = EpsilonGreedy(epsilon=0.1, rng=np.random.default_rng(42))
    >>> registry = policy.initialize(["a", "b"])
    >>> policy.select(registry)
    'a'
    """

    def __init__(
        self,
        epsilon: float = DEFAULT_EPSILON,
        cold_start: bool = True,
        rng: np.random.Generator | None = None,
    ) -> None:
        if not 0.0 <= epsilon <= 1.0:
            raise DomainError(f"epsilon must be in [0,1], got {epsilon}")
        self.epsilon = float(epsilon)
        self.cold_start = cold_start
        super().__init__(rng)

    def select(self, registry: ArmRegistry) -> Hashable:
        """Select an arm using the ε-greedy rule."""
        self._check_registry(registry)
        if self.cold_start:
            forced = self._cold_start_arm(registry)
            if forced is not None:
                return forced

        if self.rng.random() < self.epsilon:
            return registry.names[self.rng.integers(0, len(registry))]
        return exploit(registry, key=lambda arm: arm.value).name

    def __repr__(self) -> str:
        """Return string representation of policy."""
        return f"EpsilonGreedy(epsilon={self.epsilon}, cold_start={self.cold_start})"


class Softmax(SelectionStrategy):
    """Boltzmann exploration over running means.

    Arm k is selected with probability exp(v_k / τ) / Σ_j exp(v_j / τ). Low
    temperatures approach greedy selection, high temperatures uniform
    selection.

    Parameters
    ----------
    temperature : float, default=0.1
        Temperature τ (must be > 0).
    rng : np.random.Generator | None, default=None
        Random number generator for reproducibility.

    Raises
    ------
    DomainError
        If temperature <= 0.
    """

    def __init__(
        self,
        temperature: float = DEFAULT_TEMPERATURE,
        rng: np.random.Generator | None = None,
    ) -> None:
        if not temperature > FLOAT_TOL:
            raise DomainError(f"temperature must be positive, got {temperature}")
        self.temperature = float(temperature)
        super().__init__(rng)

    def probabilities(self, registry: ArmRegistry) -> np.ndarray:
        """Selection probabilities in registry order.

        Notes
        -----
        The scaled values are shifted by their maximum before exponentiating.
        This leaves the probabilities unchanged and keeps exp() finite.
        """
        self._check_registry(registry)
        scaled = np.array([arm.value for arm in registry], dtype=float) / self.temperature
        weights = np.exp(scaled - scaled.max())
        return weights / weights.sum()

    def select(self, registry: ArmRegistry) -> Hashable:
        """Sample an arm from the Boltzmann distribution."""
        probs = self.probabilities(registry)
        return registry.names[self.rng.choice(len(registry), p=probs)]

    def __repr__(self) -> str:
        """Return string representation of policy."""
        return f"Softmax(temperature={self.temperature})"


class UCB1(SelectionStrategy):
    """Upper Confidence Bound (UCB1) policy.

    Any arm that has never been pulled is selected first (its bound is
    treated as infinite). Afterwards the arm maximising
    value + sqrt(2 * log(n) / n_k) is chosen, with n the total number of
    pulls and n_k the pulls of arm k. Selection is deterministic.

    References
    ----------
    .. [1] Auer, P., Cesa-Bianchi, N., & Fischer, P. (2002). Finite-time analysis
           of the multiarmed bandit problem. Machine Learning, 47(2-3), 235-256.
    """

    def select(self, registry: ArmRegistry) -> Hashable:
        """Select the arm with the largest upper confidence bound."""
        self._check_registry(registry)
        forced = self._cold_start_arm(registry)
        if forced is not None:
            return forced

        # every arm has pulls >= 1 here, so n >= K >= 1
        log_n = math.log(total_pulls(registry))
        return exploit(
            registry, key=lambda arm: arm.value + math.sqrt(2.0 * log_n / arm.pulls)
        ).name

    def __repr__(self) -> str:
        """Return string representation of policy."""
        return "UCB1()"


class EXP3(SelectionStrategy):
    """Exponential-weight algorithm for exploration and exploitation.

    Selection probabilities mix normalised weights with uniform exploration:

        p_i = (1 - γ) w_i / Σ_j w_j + γ / K

    After observing reward x for the selected arm i, only its weight changes:

        w_i <- w_i * exp(γ * (x / p_i) / K)

    where x / p_i is the importance-weighted reward estimate. Weights are kept
    as logarithms, ``log w_i += γ * (x / p_i) / K``, and the probabilities are
    computed from ``exp(log w - max(log w))``. Long runs and large rewards
    therefore never overflow. The running mean ``value`` is maintained as
    well, for reporting.

    Parameters
    ----------
    gamma : float, default=0.1
        Exploration rate in (0, 1]. ``gamma=1`` selects uniformly.
    rng : np.random.Generator | None, default=None
        Random number generator for reproducibility.

    Raises
    ------
    DomainError
        If gamma not in (0, 1].

    References
    ----------
    .. [1] Auer, P., Cesa-Bianchi, N., Freund, Y., & Schapire, R. E. (2002). The
           nonstochastic multiarmed bandit problem. SIAM J. Comput., 32(1), 48-77.
    """

    arm_type = Exp3ArmState

    def __init__(
        self,
        gamma: float = DEFAULT_GAMMA,
        rng: np.random.Generator | None = None,
    ) -> None:
        if not FLOAT_TOL < gamma <= 1.0:
            raise DomainError(f"gamma must be in (0,1], got {gamma}")
        self.gamma = float(gamma)
        super().__init__(rng)

    def probabilities(self, registry: ArmRegistry) -> np.ndarray:
        """Selection probabilities in registry order."""
        self._check_registry(registry)
        log_weights = np.array([arm.log_weight for arm in registry], dtype=float)
        weights = np.exp(log_weights - log_weights.max())
        K = len(registry)
        return (1.0 - self.gamma) * weights / weights.sum() + self.gamma / K

    def select(self, registry: ArmRegistry) -> Hashable:
        """Sample an arm from the EXP3 distribution."""
        probs = self.probabilities(registry)
        return registry.names[self.rng.choice(len(registry), p=probs)]

    def update(
        self, arm: Exp3ArmState, reward: float, registry: ArmRegistry | None = None
    ) -> Exp3ArmState:
        """Add the importance-weighted reward to the selected arm's log-weight.

        Raises
        ------
        ConfigurationError
            If ``registry`` is missing or does not contain the arm.
        """
        if registry is None:
            raise ConfigurationError("EXP3 update requires the registry the arm was selected from")
        if arm.name not in registry:
            raise ConfigurationError(f"Unknown arm {arm.name!r}")
        updated = super().update(arm, reward)

        K = len(registry)
        p = self.probabilities(registry)[registry.names.index(arm.name)]
        log_weight = arm.log_weight + self.gamma * (reward / p) / K
        return replace(updated, log_weight=log_weight)

    def __repr__(self) -> str:
        """Return string representation of policy."""
        return f"EXP3(gamma={self.gamma})"


class BayesThompson(SelectionStrategy):
    """Thompson sampling with Beta posteriors for Bernoulli rewards.

    Each arm carries a Beta(α, β) posterior over its success probability.
    Selection draws one sample per arm and picks the largest; the update adds
    the reward to α and its complement to β.

    Parameters
    ----------
    alpha : float, default=1.0
        Prior α for every arm (must be > 0).
    beta : float, default=1.0
        Prior β for every arm (must be > 0).
    rng : np.random.Generator | None, default=None
        Random number generator for reproducibility.

    Raises
    ------
    DomainError
        If alpha or beta <= 0.

    Examples
    --------
    >>> from bandit_simulate.bandits.arms import pull
    >>> policy = BayesThompson(rng=np.random.default_rng(42))
    >>> registry = policy.initialize(["control", "variant"])
    >>> arm = policy.update(pull(registry["control"]), 1)
    >>> (arm.alpha, arm.beta)
    (2.0, 1.0)
    """

    arm_type = BetaArmState

    def __init__(
        self,
        alpha: float = 1.0,
        beta: float = 1.0,
        rng: np.random.Generator | None = None,
    ) -> None:
        if not (alpha > FLOAT_TOL and beta > FLOAT_TOL):
            raise DomainError(f"alpha and beta must be positive, got {alpha}, {beta}")
        self.alpha = float(alpha)
        self.beta = float(beta)
        super().__init__(rng)

    def new_arm(self, name: Hashable) -> BetaArmState:
        """Build a fresh arm carrying the prior."""
        return BetaArmState(name, alpha=self.alpha, beta=self.beta)

    def select(self, registry: ArmRegistry) -> Hashable:
        """Draw one posterior sample per arm and select the largest."""
        self._check_registry(registry)
        alphas = np.array([arm.alpha for arm in registry], dtype=float)
        betas = np.array([arm.beta for arm in registry], dtype=float)
        theta = self.rng.beta(alphas, betas)
        return registry.names[int(np.argmax(theta))]

    def update(
        self, arm: BetaArmState, reward: float, registry: ArmRegistry | None = None
    ) -> BetaArmState:
        """Update the posterior with a binary reward.

        Raises
        ------
        DomainError
            If reward is not 0 or 1.
        """
        if reward not in (0, 1):
            raise DomainError(f"BayesThompson requires rewards in {{0, 1}}, got {reward}")
        updated = super().update(arm, reward)
        return replace(updated, alpha=arm.alpha + reward, beta=arm.beta + (1 - reward))

    def __repr__(self) -> str:
        """Return string representation of policy."""
        return f"BayesThompson(alpha={self.alpha}, beta={self.beta})"
