"""PoWER rollout, averaging and improvement components."""

from power_rl.rl.policy import DeterministicPolicy, GaussianNoisePolicy, NoisePolicy
from power_rl.rl.rollout import (
    aggregate_trajectory,
    rewards_to_go,
    rollout_episode,
    run_episode,
)
from power_rl.rl.train import (
    TrainingResult,
    average_episodes,
    evaluate_policy,
    improve,
    train_power,
)

__all__ = [
    "DeterministicPolicy",
    "GaussianNoisePolicy",
    "NoisePolicy",
    "TrainingResult",
    "aggregate_trajectory",
    "average_episodes",
    "evaluate_policy",
    "improve",
    "rewards_to_go",
    "rollout_episode",
    "run_episode",
    "train_power",
]
