"""Episode rollout and reward-weighted statistics for PoWER updates."""

from __future__ import annotations

import logging

import numpy as np

from power_rl.core.dynamics import World, is_terminal_state, step_world
from power_rl.core.errors import PowerError
from power_rl.core.linalg import precision_weight, resolve_sigma
from power_rl.core.types import EpisodeStatistics, Trajectory, Vector
from power_rl.rl.policy import GaussianNoisePolicy, NoisePolicy, sample_action

logger = logging.getLogger(__name__)


def validate_theta(theta: Vector) -> None:
    """Check that ``theta`` is a finite, non-empty 1-D float array."""
    if not isinstance(theta, np.ndarray):
        raise ValueError(f"theta must be a numpy array; got {type(theta).__name__}")
    if theta.ndim != 1 or theta.shape[0] == 0:
        raise ValueError(f"theta must be a non-empty vector; got shape {theta.shape}")
    if not np.issubdtype(theta.dtype, np.floating):
        raise ValueError(f"theta must have a floating dtype; got {theta.dtype}")
    if not np.all(np.isfinite(theta)):
        raise ValueError("theta contains non-finite entries.")


def rollout_episode(
    world: World,
    theta: Vector,
    policy: NoisePolicy,
    max_steps: int,
) -> Trajectory:
    """Run one exploratory episode from the zero state.

    The terminal predicate is checked only after a step, so at least one
    transition is always recorded. At most ``max_steps`` transitions are.
    """
    if max_steps <= 0:
        raise ValueError("max_steps must be positive.")

    state = np.zeros(theta.shape[0], dtype=np.float64)
    states: list[Vector] = []
    noises: list[Vector] = []
    rewards: list[float] = []

    step = 0
    while True:
        try:
            action, noise = sample_action(policy, theta, state)
            reward, next_state = step_world(world, state, action)
            done = step + 1 >= max_steps or is_terminal_state(world, next_state)
        except PowerError as exc:
            raise exc.annotate(step=step)
        states.append(state)
        noises.append(noise)
        rewards.append(reward)
        state = next_state
        step += 1
        if done:
            break

    return Trajectory(
        states=np.stack(states),
        noises=np.stack(noises),
        rewards=np.asarray(rewards, dtype=np.float64),
    )


def rewards_to_go(rewards: np.ndarray) -> np.ndarray:
    """Return undiscounted suffix sums; entry 0 is the episode return."""
    rewards = np.asarray(rewards, dtype=np.float64)
    return np.cumsum(rewards[::-1])[::-1]


def aggregate_trajectory(
    trajectory: Trajectory,
    sigma: float | np.ndarray,
) -> EpisodeStatistics:
    """Fold a trajectory into reward-weighted precision and noise sums."""
    dim = trajectory.states.shape[1]
    resolved_sigma = resolve_sigma(sigma, dim)
    returns = rewards_to_go(trajectory.rewards)

    weight_sum = np.zeros((dim, dim), dtype=np.float64)
    noise_weighted_sum = np.zeros(dim, dtype=np.float64)
    for step in range(trajectory.n_steps):
        weight = precision_weight(trajectory.states[step], resolved_sigma, step=step)
        weight_sum += weight * returns[step]
        noise_weighted_sum += (weight @ trajectory.noises[step]) * returns[step]

    return EpisodeStatistics(
        weight_sum=weight_sum,
        noise_weighted_sum=noise_weighted_sum,
        total_return=float(returns[0]),
    )


def run_episode(
    world: World,
    theta: Vector,
    sigma: float | np.ndarray,
    max_steps: int,
    *,
    policy: NoisePolicy | None = None,
    episode_index: int | None = None,
) -> EpisodeStatistics:
    """Roll out one episode and return ``(weight_sum, noise_weighted_sum, return)``.

    Args:
        world: Environment queried for rewards and transitions.
        theta: Policy parameter; also fixes the state dimension.
        sigma: Exploration covariance used by the precision weights.
        max_steps: Maximum number of transitions.
        policy: Noise policy; defaults to ``GaussianNoisePolicy(sigma)``.
        episode_index: Position of this episode in its batch, reported in errors.

    Raises:
        DegenerateWeightError: If ``sᵗ σ s`` is zero at a step after the first.
        ContractViolationError: If the world or policy returns malformed values.
    """
    validate_theta(theta)
    if policy is None:
        policy = GaussianNoisePolicy(sigma)

    try:
        trajectory = rollout_episode(world, theta, policy, max_steps)
        statistics = aggregate_trajectory(trajectory, sigma)
    except PowerError as exc:
        raise exc.annotate(episode=episode_index)

    logger.debug(
        "Episode %s finished after %d steps with return %.6g",
        episode_index,
        trajectory.n_steps,
        statistics.total_return,
    )
    return statistics
