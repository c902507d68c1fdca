"""Tests for batch averaging and the improvement loop."""

from __future__ import annotations

import numpy as np
import pytest

from power_rl.core.errors import DegenerateWeightError, SingularUpdateError
from power_rl.core.params import PowerConfig
from power_rl.rl.policy import DeterministicPolicy, GaussianNoisePolicy
from power_rl.rl.rollout import run_episode
from power_rl.rl.train import (
    average_episodes,
    evaluate_policy,
    improve,
    train_power,
)


def test_single_episode_update_is_inverse_weight_times_noise(tracking_world) -> None:
    theta = np.array([0.2, -0.1])
    stats = run_episode(
        tracking_world, theta, 0.5, 6, policy=GaussianNoisePolicy(0.5, seed=7)
    )
    batch = average_episodes(
        tracking_world,
        theta,
        0.5,
        1,
        6,
        policy=GaussianNoisePolicy(0.5, seed=7),
    )

    expected = np.linalg.inv(stats.weight_sum) @ stats.noise_weighted_sum
    np.testing.assert_array_equal(batch.update, expected)
    assert batch.mean_return == stats.total_return


def test_average_episodes_means_sums_and_returns(tracking_world) -> None:
    theta = np.array([0.5, 0.5])
    policy = GaussianNoisePolicy(0.5, seed=3)
    reference_policy = GaussianNoisePolicy(0.5, seed=3)
    episodes = [
        run_episode(tracking_world, theta, 0.5, 5, policy=reference_policy)
        for _ in range(4)
    ]
    batch = average_episodes(tracking_world, theta, 0.5, 4, 5, policy=policy)

    mean_weight = sum(e.weight_sum for e in episodes) / 4
    mean_noise = sum(e.noise_weighted_sum for e in episodes) / 4
    np.testing.assert_allclose(batch.update, np.linalg.solve(mean_weight, mean_noise))
    assert batch.mean_return == pytest.approx(np.mean([e.total_return for e in episodes]))


def test_scenario_a_zero_noise_gives_zero_update(make_line_world) -> None:
    batch = average_episodes(
        make_line_world(reward=1.0), np.zeros(1), 0.5, 3, 3, policy=DeterministicPolicy()
    )
    np.testing.assert_array_equal(batch.update, [0.0])
    assert batch.mean_return == 3.0


def test_scenario_d_zero_updates_returns_theta_unchanged(make_line_world) -> None:
    world = make_line_world()
    theta = np.array([1.25, -0.5])

    result = improve(world, theta, num_updates=0, num_episodes=5, max_steps=10)

    assert result is theta
    np.testing.assert_array_equal(result, [1.25, -0.5])
    assert world.calls == 0


def test_improve_adds_update_in_place(tracking_world) -> None:
    theta = np.array([0.0, 0.0])
    batch = average_episodes(
        tracking_world, theta.copy(), 0.5, 3, 8, policy=GaussianNoisePolicy(0.5, seed=21)
    )

    result = improve(
        tracking_world,
        theta,
        num_updates=1,
        num_episodes=3,
        max_steps=8,
        policy=GaussianNoisePolicy(0.5, seed=21),
    )

    assert result is theta
    np.testing.assert_array_equal(theta, batch.update)


def test_train_power_is_reproducible_with_seed(tracking_world) -> None:
    config = PowerConfig(sigma=0.5, num_updates=4, num_episodes=5, max_steps=10, seed=9)

    first = train_power(tracking_world, np.zeros(2), config)
    second = train_power(tracking_world, np.zeros(2), config)

    assert first.iterations == 4
    assert len(first.mean_returns) == 4
    assert np.all(np.isfinite(first.theta))
    np.testing.assert_array_equal(first.theta, second.theta)
    assert first.mean_returns == second.mean_returns


def test_train_power_with_progress_bar(tracking_world) -> None:
    config = PowerConfig(num_updates=2, num_episodes=2, max_steps=4, seed=0, show_progress=True)
    result = train_power(tracking_world, np.zeros(2), config)
    assert result.iterations == 2


def test_degenerate_weight_surfaces_with_full_context(make_line_world) -> None:
    with pytest.raises(DegenerateWeightError) as excinfo:
        improve(
            make_line_world(),
            np.zeros(2),
            num_updates=3,
            num_episodes=2,
            max_steps=5,
            sigma=0.0,
        )
    error = excinfo.value
    assert (error.iteration, error.episode, error.step) == (0, 0, 1)
    assert "iteration=0, episode=0, step=1" in str(error)


def test_singular_average_weight_raises_with_iteration(make_line_world) -> None:
    # Zero rewards make every weighted sum vanish.
    world = make_line_world(reward=0.0)
    with pytest.raises(SingularUpdateError) as excinfo:
        average_episodes(world, np.zeros(2), 0.5, 2, 4, iteration=6)
    assert excinfo.value.iteration == 6
    assert excinfo.value.episode is None


def test_pseudo_inverse_option_handles_singular_weight(make_line_world) -> None:
    world = make_line_world(reward=0.0)
    config = PowerConfig(pseudo_inverse=True)
    batch = average_episodes(world, np.zeros(2), 0.5, 2, 4, config=config)

    np.testing.assert_array_equal(batch.update, np.zeros(2))
    assert batch.mean_return == 0.0


def test_average_episodes_rejects_non_positive_episode_count(make_line_world) -> None:
    with pytest.raises(ValueError, match="num_episodes"):
        average_episodes(make_line_world(), np.zeros(1), 0.5, 0, 3)


def test_evaluate_policy_uses_noise_free_actions(make_line_world) -> None:
    world = make_line_world(reward=2.0, terminal_at=4.0)
    assert evaluate_policy(world, np.zeros(3), max_steps=10, num_episodes=2) == 8.0


def test_improve_uses_config_sigma_when_no_override(make_line_world) -> None:
    with pytest.raises(DegenerateWeightError) as excinfo:
        improve(
            make_line_world(),
            np.zeros(1),
            num_updates=1,
            num_episodes=1,
            max_steps=3,
            config=PowerConfig(sigma=0.0),
            policy=DeterministicPolicy(),
        )
    assert excinfo.value.step == 1


def test_improve_sigma_keyword_overrides_config(make_line_world) -> None:
    theta = np.zeros(1)
    result = improve(
        make_line_world(),
        theta,
        num_updates=1,
        num_episodes=1,
        max_steps=3,
        sigma=0.5,
        config=PowerConfig(sigma=0.0),
        policy=DeterministicPolicy(),
    )
    np.testing.assert_array_equal(result, [0.0])


def test_average_episodes_without_policy_replays_seeded_noise(tracking_world) -> None:
    config = PowerConfig(seed=13)
    theta = np.array([0.1, 0.2])
    first = average_episodes(tracking_world, theta, 0.5, 2, 5, config=config)
    second = average_episodes(tracking_world, theta, 0.5, 2, 5, config=config)

    np.testing.assert_array_equal(first.update, second.update)

    policy = GaussianNoisePolicy(0.5, seed=13)
    shared_first = average_episodes(tracking_world, theta, 0.5, 2, 5, policy=policy)
    shared_second = average_episodes(tracking_world, theta, 0.5, 2, 5, policy=policy)
    assert not np.array_equal(shared_first.update, shared_second.update)
