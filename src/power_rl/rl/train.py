"""Batch averaging and the PoWER improvement loop."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging

import numpy as np

from power_rl.core.dynamics import World
from power_rl.core.errors import PowerError
from power_rl.core.linalg import resolve_sigma, solve_update
from power_rl.core.params import PowerConfig
from power_rl.core.types import BatchUpdate, Vector
from power_rl.rl.policy import DeterministicPolicy, GaussianNoisePolicy, NoisePolicy
from power_rl.rl.rollout import rollout_episode, run_episode, validate_theta

logger = logging.getLogger(__name__)

DEFAULT_SIGMA = 0.5


@dataclass(frozen=True)
class TrainingResult:
    """Outputs from one PoWER training run."""

    theta: Vector
    mean_returns: tuple[float, ...]
    iterations: int


def average_episodes(
    world: World,
    theta: Vector,
    sigma: float | np.ndarray = DEFAULT_SIGMA,
    num_episodes: int = 10,
    max_steps: int = 100,
    *,
    policy: NoisePolicy | None = None,
    config: PowerConfig | None = None,
    iteration: int | None = None,
) -> BatchUpdate:
    """Average ``num_episodes`` rollouts and solve for the parameter update.

    The update is ``W̄⁻¹ · N̄`` where ``W̄`` and ``N̄`` are the per-episode weight
    and noise sums averaged over the batch. ``config`` supplies the
    singular-matrix handling and the seed of the default policy.

    Without ``policy`` a fresh ``GaussianNoisePolicy`` is built per call, so a
    fixed ``config.seed`` replays the same noise in every call. Pass one policy
    across calls (as ``train_power`` does) to keep drawing new noise.
    """
    validate_theta(theta)
    if num_episodes <= 0:
        raise ValueError("num_episodes must be positive.")
    dim = theta.shape[0]
    resolve_sigma(sigma, dim)
    if config is None:
        config = PowerConfig()
    if policy is None:
        policy = GaussianNoisePolicy(sigma, seed=config.seed)

    weight_total = np.zeros((dim, dim), dtype=np.float64)
    noise_total = np.zeros(dim, dtype=np.float64)
    return_total = 0.0
    try:
        for episode in range(num_episodes):
            statistics = run_episode(
                world,
                theta,
                sigma,
                max_steps,
                policy=policy,
                episode_index=episode,
            )
            weight_total += statistics.weight_sum
            noise_total += statistics.noise_weighted_sum
            return_total += statistics.total_return

        update = solve_update(
            weight_total / num_episodes,
            noise_total / num_episodes,
            pseudo_inverse=config.pseudo_inverse,
            rcond=config.pinv_rcond,
            max_condition=config.max_condition,
        )
    except PowerError as exc:
        raise exc.annotate(iteration=iteration)

    return BatchUpdate(update=update, mean_return=return_total / num_episodes)


def train_power(
    world: World,
    theta: Vector,
    config: PowerConfig,
    policy: NoisePolicy | None = None,
) -> TrainingResult:
    """Run ``config.num_updates`` PoWER updates, modifying ``theta`` in place."""
    config.validate()
    validate_theta(theta)
    sigma = config.sigma_value()
    if policy is None:
        policy = GaussianNoisePolicy(sigma, seed=config.seed)

    mean_returns: list[float] = []
    iterator = range(config.num_updates)
    show_tqdm = config.show_progress and config.num_updates > 0
    progress = iterator
    if show_tqdm:
        # Import tqdm lazily to avoid notebook-side effects when progress is disabled.
        from tqdm.auto import tqdm

        progress = tqdm(
            iterator,
            desc=config.progress_desc,
            dynamic_ncols=True,
            leave=False,
        )

    try:
        for iteration in progress:
            batch = average_episodes(
                world,
                theta,
                sigma,
                config.num_episodes,
                config.max_steps,
                policy=policy,
                config=config,
                iteration=iteration,
            )
            theta += batch.update
            mean_returns.append(batch.mean_return)
            logger.info(
                "Update %d: mean return %.6g, |update| %.3e",
                iteration,
                batch.mean_return,
                float(np.linalg.norm(batch.update)),
            )
            if show_tqdm:
                progress.set_postfix({"return": f"{batch.mean_return:.3e}"}, refresh=False)
    finally:
        if show_tqdm:
            progress.close()

    return TrainingResult(
        theta=theta,
        mean_returns=tuple(mean_returns),
        iterations=len(mean_returns),
    )


def improve(
    world: World,
    theta: Vector,
    num_updates: int,
    num_episodes: int,
    max_steps: int,
    *,
    sigma: float | np.ndarray | None = None,
    policy: NoisePolicy | None = None,
    config: PowerConfig | None = None,
) -> Vector:
    """Apply ``num_updates`` PoWER updates to ``theta`` in place and return it.

    There is no convergence check or step size: each update is the full
    weighted least-squares solution. Errors abort the loop with the iteration,
    episode and step attached. ``sigma`` overrides ``config.sigma`` when given;
    with neither, ``DEFAULT_SIGMA`` is used.
    """
    base = config if config is not None else PowerConfig(sigma=DEFAULT_SIGMA)
    overrides: dict[str, object] = {
        "num_updates": num_updates,
        "num_episodes": num_episodes,
        "max_steps": max_steps,
    }
    if sigma is not None:
        overrides["sigma"] = _config_sigma(sigma)
    run_config = replace(base, **overrides)
    return train_power(world, theta, run_config, policy=policy).theta


def evaluate_policy(
    world: World,
    theta: Vector,
    max_steps: int,
    num_episodes: int = 1,
) -> float:
    """Return the mean episode return of the noise-free policy ``a = θᵗ s``."""
    validate_theta(theta)
    if num_episodes <= 0:
        raise ValueError("num_episodes must be positive.")
    policy = DeterministicPolicy()
    total = 0.0
    for episode in range(num_episodes):
        try:
            trajectory = rollout_episode(world, theta, policy, max_steps)
        except PowerError as exc:
            raise exc.annotate(episode=episode)
        total += float(trajectory.rewards.sum())
    return total / num_episodes


def _config_sigma(sigma: float | np.ndarray) -> float | tuple[tuple[float, ...], ...]:
    if np.ndim(sigma) == 0:
        return float(sigma)
    return tuple(tuple(float(value) for value in row) for row in np.asarray(sigma))
