"""
Universal data structures, errors and conversion functions shared by the
track, train and simulation modules.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SimulationError(Exception):
    """Base class for all errors raised by the simulation core."""


class InvariantViolation(SimulationError):
    """A safety invariant was broken (logic bug, never expected at runtime)."""


class SegmentAlreadyOccupied(InvariantViolation):
    """A train tried to reserve a segment held by another train."""


class ScheduleExhausted(SimulationError):
    """A schedule cursor was moved past its last segment."""


class InvalidHandle(SimulationError, KeyError):
    """A segment or train handle is stale or belongs to another registry."""

    def __str__(self) -> str:
        # KeyError quotes its argument, keep the plain message
        return str(self.args[0]) if self.args else ""


@dataclass(frozen=True)
class SegmentHandle:
    """Stable reference to a segment of one TrackNetwork.

    Attributes:
        index: Position of the segment in the network's arena.
        generation: Identity of the network that issued the handle.
    """
    index: int
    generation: int


@dataclass(frozen=True)
class TrainHandle:
    """Stable reference to a train of one Simulation.

    Attributes:
        index: Position of the train in the simulation's arena.
        generation: Identity of the simulation that spawned the train.
    """
    index: int
    generation: int


@dataclass(frozen=True)
class PerformanceEnvelope:
    """Per-train performance limits.

    Attributes:
        acceleration: Acceleration applied on ACCELERATE, units/s^2.
        brake_deceleration: Deceleration applied on BRAKE, units/s^2.
        max_speed: Speed cap, units/s.
    """
    acceleration: float
    brake_deceleration: float
    max_speed: float

    def __post_init__(self) -> None:
        for name in ("acceleration", "brake_deceleration", "max_speed"):
            value = getattr(self, name)
            if not value > 0.0:
                raise ValueError(
                    f"PerformanceEnvelope.{name} must be positive, got {value}.")


class CommandType(Enum):
    """Enumeration of per-tick train commands."""
    ACCELERATE = "accelerate"
    HOLD = "hold"
    BRAKE = "brake"
    CUSTOM = "custom"


@dataclass(frozen=True)
class TrainCommand:
    """Command issued to a train by the control policy for one tick.

    Attributes:
        command_type: Kind of command.
        custom_acceleration: Acceleration used by CUSTOM commands only.
    """
    command_type: CommandType = CommandType.HOLD
    custom_acceleration: float = 0.0

    @classmethod
    def accelerate(cls) -> "TrainCommand":
        return cls(CommandType.ACCELERATE)

    @classmethod
    def hold(cls) -> "TrainCommand":
        return cls(CommandType.HOLD)

    @classmethod
    def brake(cls) -> "TrainCommand":
        return cls(CommandType.BRAKE)

    @classmethod
    def custom(cls, acceleration: float) -> "TrainCommand":
        return cls(CommandType.CUSTOM, float(acceleration))

    def acceleration(self, envelope: PerformanceEnvelope) -> float:
        """Signed acceleration this command applies under an envelope.

        Args:
            envelope: Performance limits of the commanded train.

        Returns:
            Acceleration in units/s^2 (negative while braking).
        """
        match self.command_type:
            case CommandType.ACCELERATE:
                return envelope.acceleration
            case CommandType.BRAKE:
                return -envelope.brake_deceleration
            case CommandType.CUSTOM:
                return self.custom_acceleration
            case _:
                return 0.0

    def __str__(self) -> str:
        if self.command_type == CommandType.CUSTOM:
            return f"custom({self.custom_acceleration:g})"
        return self.command_type.value


class ConversionFunctions:
    """Holds conversion factors for various units."""

    @staticmethod
    def kmh_to_mps(kmh):
        return kmh / 3.6

    @staticmethod
    def mps_to_kmh(mps):
        return mps * 3.6
