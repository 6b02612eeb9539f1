"""
train_controller_backend.py
Per-tick command decision for a train

Implements:
- Look-ahead braking distance from the command of the previous tick
- Accelerate while the next segment is free
- Brake when the end of the segment is within braking distance plus margin
"""
from dataclasses import dataclass

from universal.config import SAFETY_MARGIN
from universal.universal import PerformanceEnvelope, TrainCommand


@dataclass(frozen=True)
class ControlDecision:
    """Inputs and outcome of one control evaluation.

    Attributes:
        command: Command to apply during this tick.
        remaining_distance: Distance to the end of the current segment.
        braking_distance: Distance needed to stop, projected one tick ahead.
        next_free: Whether a next segment exists and is free.
    """
    command: TrainCommand
    remaining_distance: float
    braking_distance: float
    next_free: bool


def decide_command(velocity: float, position: float,
                   previous_command: TrainCommand,
                   envelope: PerformanceEnvelope, segment_length: float,
                   next_free: bool, tick_seconds: float,
                   safety_margin: float = SAFETY_MARGIN) -> ControlDecision:
    """Choose the command for the coming tick.

    The projection uses the command of the previous tick, so the decision
    lags the state by one tick.

    Args:
        velocity: Current speed.
        position: Position along the current segment.
        previous_command: Command applied during the previous tick.
        envelope: Performance limits of the train.
        segment_length: Length of the current segment.
        next_free: True when a next segment exists and has no occupant.
            A train at the end of its schedule passes False.
        tick_seconds: Length of a tick in seconds.
        safety_margin: Slack distance added to the braking threshold.

    Returns:
        The decision, including the distances it was based on.
    """
    projected_delta = previous_command.acceleration(envelope) * tick_seconds
    braking_distance = ((velocity + projected_delta) ** 2
                        / (2.0 * envelope.brake_deceleration))
    remaining = segment_length - position

    if next_free:
        command = TrainCommand.accelerate()
    elif (remaining - velocity * tick_seconds - projected_delta * tick_seconds
          <= braking_distance + safety_margin
          or remaining <= safety_margin):
        command = TrainCommand.brake()
    else:
        command = TrainCommand.accelerate()

    return ControlDecision(command, remaining, braking_distance, next_free)
