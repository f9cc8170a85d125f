"""Tests for Monte Carlo aggregation of replica runs."""

import numpy as np
import pytest

from bandit_simulate.bandits.aggregation import (
    cumulative_regret,
    cumulative_rewards,
    mean_cumulative_reward,
    pull_counts,
    run_replicas,
    summarize,
    terminal_cumulative_rewards,
    truncate,
)
from bandit_simulate.bandits.distributions import BernoulliRewards
from bandit_simulate.bandits.policies import UCB1, BayesThompson
from bandit_simulate.bandits.simulation import SimulationResult, simulation_sequence
from bandit_simulate.exceptions import ConfigurationError


def _results(pulled, rewards):
    """Build a replica result list from arms and rewards."""
    results = []
    cumulative = 0
    for t, (arm, reward) in enumerate(zip(pulled, rewards), 1):
        cumulative += reward
        results.append(SimulationResult(arm, reward, t, cumulative))
    return results


@pytest.fixture
def batch():
    return [
        _results(["a", "b", "a", "a"], [1, 0, 1, 1]),
        _results(["b", "b", "a", "b"], [0, 0, 1, 0]),
        _results(["a", "a", "a", "a", "b"], [1, 1, 1, 1, 0]),
    ]


class TestReductions:
    def test_cumulative_rewards(self, batch):
        np.testing.assert_array_equal(
            cumulative_rewards(batch, 4),
            [[1, 1, 2, 3], [0, 0, 1, 1], [1, 2, 3, 4]],
        )

    def test_mean_cumulative_reward(self, batch):
        np.testing.assert_allclose(
            mean_cumulative_reward(batch, 4), [2 / 3, 1.0, 2.0, 8 / 3]
        )

    def test_terminal_cumulative_rewards(self, batch):
        np.testing.assert_array_equal(terminal_cumulative_rewards(batch, 4), [3, 1, 4])
        np.testing.assert_array_equal(terminal_cumulative_rewards(batch, 2), [1, 0, 2])

    def test_cumulative_regret(self, batch):
        regret = cumulative_regret(batch, 4, best_mean=1.0)
        np.testing.assert_allclose(regret, [1 / 3, 1.0, 1.0, 4 / 3])

    def test_pull_counts(self, batch):
        counts = pull_counts(batch, 4)
        assert list(counts) == ["a", "b"]
        np.testing.assert_array_equal(counts["a"], [3, 1, 4])
        np.testing.assert_array_equal(counts["b"], [1, 3, 0])

    def test_pull_counts_chained(self):
        replica = [
            SimulationResult(("h1", "r1"), 1, 1, 1),
            SimulationResult(("h1", "r2"), 0, 2, 1),
            SimulationResult(("h1", "r1"), 1, 3, 2),
        ]
        counts = pull_counts([replica], 3)
        np.testing.assert_array_equal(counts[("h1", "r1")], [2])

    def test_accepts_lazy_sequences(self, batch):
        lazy = (iter(results) for results in batch)
        np.testing.assert_array_equal(terminal_cumulative_rewards(lazy, 4), [3, 1, 4])

    def test_inputs_not_mutated(self, batch):
        lengths = [len(results) for results in batch]
        mean_cumulative_reward(batch, 3)
        assert [len(results) for results in batch] == lengths

    def test_short_replica(self, batch):
        with pytest.raises(ConfigurationError, match="fewer than horizon"):
            truncate(batch, 5)

    def test_empty_batch(self):
        with pytest.raises(ConfigurationError, match="empty batch"):
            mean_cumulative_reward([], 3)

    @pytest.mark.parametrize("horizon", [0, -2])
    def test_invalid_horizon(self, batch, horizon):
        with pytest.raises(ConfigurationError, match="horizon"):
            truncate(batch, horizon)

    def test_summarize(self, batch):
        summary = summarize(batch, 4)
        assert summary["replications"] == 3
        assert summary["mean"] == pytest.approx(8 / 3)
        assert summary["min"] == 1
        assert summary["max"] == 4
        assert summary["std"] == pytest.approx(np.std([3, 1, 4], ddof=1))


class TestRunReplicas:
    @staticmethod
    def _replica(rng):
        env = BernoulliRewards({"control": 0.3, "variant": 0.6}, rng=rng)
        policy = BayesThompson(rng=rng)
        states = simulation_sequence(env, policy, policy.initialize(["control", "variant"]))
        return (state.result for state in states)

    def test_shape_and_reproducibility(self):
        first = run_replicas(self._replica, replications=8, horizon=60, seed=1)
        second = run_replicas(self._replica, replications=8, horizon=60, seed=1)

        assert len(first) == 8
        assert all(len(results) == 60 for results in first)
        assert first == second

    def test_replicas_are_independent(self):
        batch = run_replicas(self._replica, replications=10, horizon=100, seed=5)
        terminal = terminal_cumulative_rewards(batch, 100)
        assert len(set(terminal.tolist())) > 1

    def test_invalid_replications(self):
        with pytest.raises(ConfigurationError, match="replications"):
            run_replicas(self._replica, replications=0, horizon=10)

    def test_regret_grows_sublinearly(self):
        """UCB1 regret per step shrinks as the run gets longer."""

        def replica(rng):
            env = BernoulliRewards({"a": 0.2, "b": 0.8}, rng=rng)
            policy = UCB1(rng=rng)
            states = simulation_sequence(env, policy, policy.initialize(["a", "b"]))
            return (state.result for state in states)

        horizon = 1000
        batch = run_replicas(replica, replications=20, horizon=horizon, seed=3)
        regret = cumulative_regret(batch, horizon, best_mean=0.8)

        assert regret[99] / 100 > regret[-1] / horizon
        assert regret[-1] / horizon < 0.1
