"""
Simulation configuration.
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict

logger = logging.getLogger(__name__)

# Defaults
TICK_SECONDS = 0.1        # simulated seconds per tick
REAL_TIME_STEP = 0.05     # wall seconds per tick (50 ms fixed timestep)
SAFETY_MARGIN = 10.0      # slack distance added to the braking threshold
LOG_LEVEL = "INFO"


@dataclass
class SimulationConfig:
    """Tunable parameters of the control loop.

    Attributes:
        tick_seconds: Simulated seconds advanced by one tick.
        real_time_step: Wall-clock seconds between ticks when driven live.
        safety_margin: Distance slack used by the braking decision.
        log_level: Logging level name used by the entry point.
    """
    tick_seconds: float = TICK_SECONDS
    real_time_step: float = REAL_TIME_STEP
    safety_margin: float = SAFETY_MARGIN
    log_level: str = LOG_LEVEL

    def __post_init__(self) -> None:
        self.tick_seconds = float(self.tick_seconds)
        self.real_time_step = float(self.real_time_step)
        self.safety_margin = float(self.safety_margin)
        if self.tick_seconds <= 0.0:
            raise ValueError(
                f"tick_seconds must be positive, got {self.tick_seconds}.")
        if self.real_time_step <= 0.0:
            raise ValueError(
                f"real_time_step must be positive, got {self.real_time_step}.")
        if self.safety_margin <= 0.0:
            raise ValueError(
                f"safety_margin must be positive, got {self.safety_margin}.")
        self.log_level = str(self.log_level).upper()
        if self.log_level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log_level {self.log_level!r}.")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s",
                           ", ".join(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def load(cls, path: str) -> "SimulationConfig":
        """Read a configuration from a JSON file.

        Args:
            path: Path to a JSON object with SimulationConfig fields.
        """
        with open(path, mode='r') as file:
            try:
                data = json.load(file)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must hold a JSON object.")
        logger.info("Loaded simulation config from %s", path)
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
