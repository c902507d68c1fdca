"""World interface consumed by the rollout loop, plus its contract checks."""

from __future__ import annotations

import math
from typing import Protocol, runtime_checkable

import numpy as np

from power_rl.core.errors import ContractViolationError
from power_rl.core.types import Vector


@runtime_checkable
class World(Protocol):
    """Transition function over ``(state, action)`` with a terminal predicate."""

    def act(self, state: Vector, action: float) -> tuple[float, Vector]:
        """Apply ``action`` in ``state`` and return ``(reward, next_state)``."""
        ...

    def is_terminal(self, state: Vector) -> bool:
        ...


def step_world(world: World, state: Vector, action: float) -> tuple[float, Vector]:
    """Query ``world`` once and validate its response.

    Raises:
        ContractViolationError: If the reward is not a finite scalar, or the next
            state does not match the shape of ``state`` or has non-finite entries.
    """
    response = world.act(state, action)
    try:
        raw_reward, raw_next_state = response
    except (TypeError, ValueError) as exc:
        raise ContractViolationError(
            f"World.act must return (reward, next_state); got {response!r}"
        ) from exc

    reward = as_finite_scalar(raw_reward, name="reward")
    next_state = as_state_vector(raw_next_state, shape=state.shape, name="next_state")
    return reward, next_state


def is_terminal_state(world: World, state: Vector) -> bool:
    """Evaluate ``world.is_terminal`` and require a single truth value."""
    result = world.is_terminal(state)
    if np.ndim(result) != 0:
        raise ContractViolationError(
            f"World.is_terminal must return a single bool; got shape {np.shape(result)}"
        )
    try:
        return bool(result)
    except (TypeError, ValueError) as exc:
        raise ContractViolationError(
            f"World.is_terminal returned a non-boolean value: {result!r}"
        ) from exc


def as_finite_scalar(value: object, *, name: str) -> float:
    """Convert ``value`` to a finite float or raise a contract violation."""
    if np.ndim(value) != 0:
        raise ContractViolationError(
            f"{name} must be a scalar; got shape {np.shape(value)}"
        )
    try:
        scalar = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ContractViolationError(f"{name} is not numeric: {value!r}") from exc
    if not math.isfinite(scalar):
        raise ContractViolationError(f"{name} must be finite; got {scalar}")
    return scalar


def as_state_vector(value: object, *, shape: tuple[int, ...], name: str) -> Vector:
    """Convert ``value`` to a float64 vector of ``shape`` or raise."""
    try:
        vector = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ContractViolationError(f"{name} is not numeric: {value!r}") from exc
    if vector.shape != shape:
        raise ContractViolationError(
            f"{name} has shape {vector.shape}; expected {shape}"
        )
    if not np.all(np.isfinite(vector)):
        raise ContractViolationError(f"{name} contains non-finite entries")
    return vector
