"""Shared numeric and trajectory types used across core and RL modules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

import numpy as np


Action = float
Vector = np.ndarray
Matrix = np.ndarray


@dataclass(frozen=True)
class Trajectory:
    """Per-step record of one episode.

    Attributes:
        states: State visited before each step, shape ``(n_steps, d)``.
        noises: Exploration noise used at each step, shape ``(n_steps, d)``.
        rewards: Immediate reward of each step, shape ``(n_steps,)``.
    """

    states: np.ndarray
    noises: np.ndarray
    rewards: np.ndarray

    def __post_init__(self) -> None:
        n_steps = len(self.rewards)
        if n_steps == 0:
            raise ValueError("Trajectory must contain at least one step.")
        if len(self.states) != n_steps or len(self.noises) != n_steps:
            raise ValueError(
                "Trajectory arrays must have equal length "
                f"(states={len(self.states)}, noises={len(self.noises)}, "
                f"rewards={n_steps})."
            )

    @property
    def n_steps(self) -> int:
        return len(self.rewards)


class EpisodeStatistics(NamedTuple):
    """Reward-weighted sums collected from one episode."""

    weight_sum: Matrix
    noise_weighted_sum: Vector
    total_return: float


class BatchUpdate(NamedTuple):
    """Parameter update and mean return from one batch of episodes."""

    update: Vector
    mean_return: float
