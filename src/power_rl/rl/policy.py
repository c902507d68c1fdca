"""Exploration policies that pair an action with the noise that produced it."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np

from power_rl.core.dynamics import as_finite_scalar, as_state_vector
from power_rl.core.errors import ContractViolationError
from power_rl.core.linalg import resolve_sigma
from power_rl.core.types import Vector


@runtime_checkable
class NoisePolicy(Protocol):
    """Samples an exploratory action around the policy mean ``θᵗ s``."""

    def sample(self, theta: Vector, state: Vector) -> tuple[float, Vector]:
        """Return ``(action, noise)`` where ``noise`` perturbed the parameter."""
        ...


class GaussianNoisePolicy:
    """Linear policy with Gaussian parameter-space exploration.

    Draws ``ε ~ N(0, sigma)`` and acts with ``a = (θ + ε)ᵗ s``. A scalar
    ``sigma`` is the per-coordinate variance; a matrix is the full covariance.
    """

    def __init__(
        self,
        sigma: float | np.ndarray = 0.5,
        rng: np.random.Generator | None = None,
        seed: int | None = None,
    ) -> None:
        if rng is not None and seed is not None:
            raise ValueError("Pass either rng or seed, not both.")
        self.sigma = sigma
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def sample(self, theta: Vector, state: Vector) -> tuple[float, Vector]:
        dim = theta.shape[0]
        sigma = resolve_sigma(self.sigma, dim)
        if isinstance(sigma, np.ndarray):
            noise = self.rng.multivariate_normal(np.zeros(dim), sigma)
        else:
            noise = self.rng.normal(0.0, np.sqrt(sigma), size=dim)
        action = float((theta + noise) @ state)
        return action, noise


class DeterministicPolicy:
    """Noise-free linear policy ``a = θᵗ s``."""

    def sample(self, theta: Vector, state: Vector) -> tuple[float, Vector]:
        return float(theta @ state), np.zeros_like(theta, dtype=np.float64)


def sample_action(policy: NoisePolicy, theta: Vector, state: Vector) -> tuple[float, Vector]:
    """Query ``policy`` once and validate the action and noise it returns."""
    response = policy.sample(theta, state)
    try:
        action, noise = response
    except (TypeError, ValueError) as exc:
        raise ContractViolationError(
            f"NoisePolicy.sample must return (action, noise); got {response!r}"
        ) from exc
    return (
        as_finite_scalar(action, name="action"),
        as_state_vector(noise, shape=theta.shape, name="noise"),
    )
