"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys

import numpy as np
import pytest


def _preload_numpy_without_macos_check() -> None:
    """Preload NumPy while bypassing the macOS sanity check.

    This avoids a hard crash seen with some macOS BLAS/LAPACK builds during
    NumPy's import-time polyfit check.
    """
    if sys.platform != "darwin":
        return

    original_platform = sys.platform
    try:
        sys.platform = "linux"
        import numpy  # noqa: F401
    finally:
        sys.platform = original_platform


_preload_numpy_without_macos_check()


class LineWorld:
    """Walks every state coordinate up by one per step with a constant reward.

    ``terminal_at`` ends the episode once the first coordinate reaches it.
    """

    def __init__(self, reward: float = 1.0, terminal_at: float | None = None) -> None:
        self.reward = reward
        self.terminal_at = terminal_at
        self.calls = 0

    def act(self, state: np.ndarray, action: float) -> tuple[float, np.ndarray]:
        self.calls += 1
        return self.reward, state + 1.0

    def is_terminal(self, state: np.ndarray) -> bool:
        return self.terminal_at is not None and state[0] >= self.terminal_at


class TrackingWorld:
    """Rewards actions close to ``target · state``; always positive."""

    def __init__(self, target: np.ndarray) -> None:
        self.target = np.asarray(target, dtype=np.float64)

    def act(self, state: np.ndarray, action: float) -> tuple[float, np.ndarray]:
        error = action - float(self.target @ state)
        next_state = state + np.linspace(0.5, 1.0, len(state))
        return float(np.exp(-(error**2))), next_state

    def is_terminal(self, state: np.ndarray) -> bool:
        return False


@pytest.fixture
def line_world() -> LineWorld:
    return LineWorld()


@pytest.fixture
def tracking_world() -> TrackingWorld:
    return TrackingWorld(target=[0.8, -0.3])


@pytest.fixture
def make_line_world() -> type[LineWorld]:
    return LineWorld
