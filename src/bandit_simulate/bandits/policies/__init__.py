"""Bandit selection strategies."""

from bandit_simulate.bandits.policies.strategies import (
    EXP3,
    UCB1,
    BayesThompson,
    EpsilonGreedy,
    SelectionStrategy,
    Softmax,
)

__all__ = [
    "SelectionStrategy",
    "EpsilonGreedy",
    "Softmax",
    "UCB1",
    "EXP3",
    "BayesThompson",
]
