"""Precision weights and the weighted least-squares solve."""

from __future__ import annotations

import math

import numpy as np

from power_rl.core.errors import DegenerateWeightError, SingularUpdateError
from power_rl.core.types import Matrix, Vector


def resolve_sigma(sigma: float | np.ndarray, dim: int) -> float | Matrix:
    """Validate an exploration covariance for a ``dim``-dimensional state.

    A scalar means the isotropic covariance ``sigma * I``. Zero is accepted here;
    a vanishing quadratic form is reported per step instead.
    """
    if np.ndim(sigma) == 0:
        value = float(sigma)
        if not math.isfinite(value) or value < 0.0:
            raise ValueError(f"sigma must be finite and non-negative; got {value}")
        return value

    matrix = np.asarray(sigma, dtype=np.float64)
    if matrix.shape != (dim, dim):
        raise ValueError(
            f"sigma matrix has shape {matrix.shape}; expected {(dim, dim)}"
        )
    if not np.all(np.isfinite(matrix)):
        raise ValueError("sigma matrix contains non-finite entries.")
    return matrix


def quadratic_form(state: Vector, sigma: float | Matrix) -> float:
    """Return ``stateᵗ · sigma · state``."""
    if isinstance(sigma, np.ndarray):
        return float(state @ sigma @ state)
    return float(sigma * (state @ state))


def precision_weight(state: Vector, sigma: float | Matrix, *, step: int) -> Matrix:
    """Return the step weight ``W = s sᵗ / (sᵗ σ s)``; step 0 uses the identity."""
    if step == 0:
        return np.eye(state.shape[0])

    denominator = quadratic_form(state, sigma)
    if denominator == 0.0 or not math.isfinite(denominator):
        raise DegenerateWeightError(
            f"Quadratic form sᵗσs is {denominator}; step weight is undefined",
            step=step,
        )
    return np.outer(state, state) / denominator


def solve_update(
    weight: Matrix,
    noise: Vector,
    *,
    pseudo_inverse: bool = False,
    rcond: float = 1e-10,
    max_condition: float = 1e12,
) -> Vector:
    """Solve ``weight⁻¹ · noise`` for the parameter update.

    Raises:
        SingularUpdateError: If ``pseudo_inverse`` is off and ``weight`` is
            singular, too ill-conditioned, or yields a non-finite update.
    """
    if pseudo_inverse:
        return np.linalg.pinv(weight, rcond=rcond) @ noise

    condition = float(np.linalg.cond(weight))
    if not math.isfinite(condition) or condition > max_condition:
        raise SingularUpdateError(
            f"Averaged weight matrix is ill-conditioned (cond={condition:.3e}, "
            f"max_condition={max_condition:.3e})"
        )
    try:
        inverse = np.linalg.inv(weight)
    except np.linalg.LinAlgError as exc:
        raise SingularUpdateError(f"Averaged weight matrix is singular: {exc}") from exc

    update = inverse @ noise
    if not np.all(np.isfinite(update)):
        raise SingularUpdateError("Weighted least-squares update is non-finite")
    return update
