"""Bandit algorithms and simulation framework."""

from bandit_simulate.bandits.aggregation import (
    cumulative_regret,
    mean_cumulative_reward,
    pull_counts,
    run_replicas,
    terminal_cumulative_rewards,
)
from bandit_simulate.bandits.arms import (
    ArmRegistry,
    ArmState,
    BetaArmState,
    Exp3ArmState,
    apply_reward,
    initialize,
    merge,
    pull,
    total_pulls,
    unpulled,
)
from bandit_simulate.bandits.distributions import (
    BernoulliRewards,
    CallableRewards,
    GaussianRewards,
    RewardModel,
    StudentTRewards,
    combinatorial_arms,
    join_names,
)
from bandit_simulate.bandits.policies import (
    EXP3,
    UCB1,
    BayesThompson,
    EpsilonGreedy,
    SelectionStrategy,
    Softmax,
)
from bandit_simulate.bandits.simulation import (
    ChainedState,
    SimulationResult,
    SimulationState,
    chained_sequence,
    chained_step,
    run,
    run_chained,
    simulation_sequence,
    step,
)

__all__ = [
    "ArmState",
    "Exp3ArmState",
    "BetaArmState",
    "ArmRegistry",
    "initialize",
    "pull",
    "apply_reward",
    "merge",
    "total_pulls",
    "unpulled",
    "SelectionStrategy",
    "EpsilonGreedy",
    "Softmax",
    "UCB1",
    "EXP3",
    "BayesThompson",
    "RewardModel",
    "BernoulliRewards",
    "GaussianRewards",
    "StudentTRewards",
    "CallableRewards",
    "join_names",
    "combinatorial_arms",
    "SimulationResult",
    "SimulationState",
    "ChainedState",
    "step",
    "simulation_sequence",
    "run",
    "chained_step",
    "chained_sequence",
    "run_chained",
    "mean_cumulative_reward",
    "terminal_cumulative_rewards",
    "cumulative_regret",
    "pull_counts",
    "run_replicas",
]
