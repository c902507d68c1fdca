"""Training configuration schema and YAML helpers."""

from __future__ import annotations

from dataclasses import asdict, dataclass
import math
from pathlib import Path
from typing import Any

import numpy as np
import yaml


@dataclass(frozen=True)
class PowerConfig:
    """Hyperparameters for the PoWER improvement loop.

    Attributes:
        sigma: Exploration covariance, a scalar or a nested d×d list.
        num_updates: Number of parameter updates to perform.
        num_episodes: Episodes averaged per update.
        max_steps: Step limit of each episode.
        pseudo_inverse: Use a pseudo-inverse instead of failing on a singular
            averaged weight matrix.
        pinv_rcond: Relative singular-value cutoff for the pseudo-inverse.
        max_condition: Condition number above which the averaged weight matrix
            is treated as singular.
        seed: Seed for the default Gaussian noise policy.
        show_progress: Show a tqdm progress bar over updates.
        progress_desc: Label of the progress bar.
    """

    sigma: float | tuple[tuple[float, ...], ...] = 0.5
    num_updates: int = 10
    num_episodes: int = 10
    max_steps: int = 100
    pseudo_inverse: bool = False
    pinv_rcond: float = 1e-10
    max_condition: float = 1e12
    seed: int | None = None
    show_progress: bool = False
    progress_desc: str = "PoWER"

    def validate(self) -> None:
        if np.ndim(self.sigma) == 0:
            if not math.isfinite(float(self.sigma)) or float(self.sigma) < 0.0:
                raise ValueError("sigma must be finite and non-negative.")
        else:
            matrix = np.asarray(self.sigma, dtype=np.float64)
            if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
                raise ValueError("sigma must be a scalar or a square matrix.")
            if not np.all(np.isfinite(matrix)):
                raise ValueError("sigma matrix contains non-finite entries.")
        if self.num_updates < 0:
            raise ValueError("num_updates must be non-negative.")
        if self.num_episodes <= 0:
            raise ValueError("num_episodes must be positive.")
        if self.max_steps <= 0:
            raise ValueError("max_steps must be positive.")
        if self.pinv_rcond <= 0.0:
            raise ValueError("pinv_rcond must be positive.")
        if self.max_condition <= 1.0:
            raise ValueError("max_condition must be greater than 1.")

    def sigma_value(self) -> float | np.ndarray:
        """Return sigma as a float or a float64 matrix."""
        if np.ndim(self.sigma) == 0:
            return float(self.sigma)
        return np.asarray(self.sigma, dtype=np.float64)

    def to_dict(self) -> dict[str, Any]:
        """Convert config object to a plain dict."""
        payload = asdict(self)
        if np.ndim(self.sigma) != 0:
            payload["sigma"] = [list(row) for row in self.sigma]
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "PowerConfig":
        """Create config object from a plain dict, using defaults for absent keys."""
        unknown = set(payload) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown PowerConfig keys: {sorted(unknown)}")

        defaults = cls()
        raw_sigma = payload.get("sigma", defaults.sigma)
        if np.ndim(raw_sigma) == 0:
            sigma: float | tuple[tuple[float, ...], ...] = float(raw_sigma)
        else:
            sigma = tuple(tuple(float(value) for value in row) for row in raw_sigma)
        seed = payload.get("seed", defaults.seed)
        return cls(
            sigma=sigma,
            num_updates=int(payload.get("num_updates", defaults.num_updates)),
            num_episodes=int(payload.get("num_episodes", defaults.num_episodes)),
            max_steps=int(payload.get("max_steps", defaults.max_steps)),
            pseudo_inverse=bool(payload.get("pseudo_inverse", defaults.pseudo_inverse)),
            pinv_rcond=float(payload.get("pinv_rcond", defaults.pinv_rcond)),
            max_condition=float(payload.get("max_condition", defaults.max_condition)),
            seed=None if seed is None else int(seed),
            show_progress=bool(payload.get("show_progress", defaults.show_progress)),
            progress_desc=str(payload.get("progress_desc", defaults.progress_desc)),
        )


def save_power_config(config: PowerConfig, output_path: Path) -> None:
    """Serialize config to YAML."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(yaml.safe_dump(config.to_dict(), sort_keys=False))


def load_power_config(path: Path) -> PowerConfig:
    """Load config from YAML."""
    payload = yaml.safe_load(path.read_text())
    if not isinstance(payload, dict):
        raise ValueError("Expected a mapping in PoWER config YAML.")
    config = PowerConfig.from_dict(payload)
    config.validate()
    return config
