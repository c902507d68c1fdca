"""Failure types raised by the PoWER update pipeline."""

from __future__ import annotations


_CONTEXT_KEYS: tuple[str, ...] = ("iteration", "episode", "step")


class PowerError(RuntimeError):
    """Base error carrying the rollout coordinates where a failure happened.

    Each layer of the pipeline fills in the coordinate it owns (step inside the
    simulator, episode inside the batch averager, iteration inside the
    improvement loop) and re-raises.
    """

    def __init__(
        self,
        message: str,
        *,
        iteration: int | None = None,
        episode: int | None = None,
        step: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.iteration = iteration
        self.episode = episode
        self.step = step

    def annotate(self, **context: int | None) -> "PowerError":
        """Fill in context fields that are still unset and return ``self``."""
        for key, value in context.items():
            if key not in _CONTEXT_KEYS:
                raise ValueError(f"Unknown error context key: {key}")
            if value is not None and getattr(self, key) is None:
                setattr(self, key, value)
        return self

    @property
    def context(self) -> dict[str, int]:
        return {
            key: getattr(self, key)
            for key in _CONTEXT_KEYS
            if getattr(self, key) is not None
        }

    def __str__(self) -> str:
        context = self.context
        if not context:
            return self.message
        rendered = ", ".join(f"{key}={value}" for key, value in context.items())
        return f"{self.message} ({rendered})"


class DegenerateWeightError(PowerError):
    """Quadratic form ``sᵗ σ s`` vanished, so the step weight is undefined."""


class SingularUpdateError(PowerError):
    """Averaged weight matrix cannot be inverted reliably."""


class ContractViolationError(PowerError, ValueError):
    """World or noise policy returned a malformed value."""
