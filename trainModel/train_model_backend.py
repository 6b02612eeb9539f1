"""Train Model Backend
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from universal.universal import (
    CommandType,
    PerformanceEnvelope,
    ScheduleExhausted,
    SegmentHandle,
    TrainCommand,
    TrainHandle,
)

logger = logging.getLogger(__name__)


class TrainSchedule:
    """Ordered list of segments a train traverses, with a cursor.

    Attributes:
        segments: Segments in travel order.
        current_index: Index of the segment the train occupies. Only moves
            forward, one step at a time.
    """

    def __init__(self, segments: Sequence[SegmentHandle],
                 start_index: int = 0) -> None:
        """Initialize a schedule.

        Args:
            segments: Non-empty sequence of segment handles.
            start_index: Index of the segment the train starts on.
        """
        self.segments: List[SegmentHandle] = list(segments)
        if not self.segments:
            raise ValueError("A train schedule needs at least one segment.")
        if not 0 <= start_index < len(self.segments):
            raise ValueError(
                f"Start index {start_index} outside schedule of "
                f"{len(self.segments)} segments.")
        self.current_index = start_index

    def current(self) -> SegmentHandle:
        if not 0 <= self.current_index < len(self.segments):
            raise ScheduleExhausted(
                f"Schedule index {self.current_index} is out of range.")
        return self.segments[self.current_index]

    def peek_next(self) -> Optional[SegmentHandle]:
        if self.current_index + 1 < len(self.segments):
            return self.segments[self.current_index + 1]
        return None

    def peek_previous(self) -> Optional[SegmentHandle]:
        if self.current_index > 0:
            return self.segments[self.current_index - 1]
        return None

    @property
    def at_end(self) -> bool:
        return self.current_index >= len(self.segments) - 1

    def advance(self) -> SegmentHandle:
        """Move the cursor to the next segment.

        Returns:
            The new current segment.

        Raises:
            ScheduleExhausted: The cursor is already on the last segment.
        """
        if self.at_end:
            raise ScheduleExhausted("Train is already on its last segment.")
        self.current_index += 1
        return self.segments[self.current_index]

    def __len__(self) -> int:
        return len(self.segments)


@dataclass
class KinematicState:
    """Position along the current segment and velocity.

    Attributes:
        position: Distance from the start of the current segment.
        previous_position: Position at the start of the last tick, used to
            interpolate the drawn position between ticks.
        velocity: Speed, never negative.
    """
    position: float = 0.0
    previous_position: float = 0.0
    velocity: float = 0.0


@dataclass(frozen=True)
class SegmentTransfer:
    """Request to move a train from one segment to the next.

    Produced by the position integrator when a train crosses the end of its
    segment, applied afterwards against the occupancy registry.

    Attributes:
        train: Train crossing the boundary.
        leave: Segment being left.
        enter: Segment being entered.
        carry_over: Distance travelled past the boundary.
    """
    train: TrainHandle
    leave: SegmentHandle
    enter: SegmentHandle
    carry_over: float


class Train:
    """A train running on a schedule of segments.

    Attributes:
        handle: Handle issued by the simulation.
        name: Label used in the monitor and in logs.
        envelope: Performance limits.
        schedule: Segments to traverse and the current one.
        kinematics: Position and velocity.
        command: Command chosen by the controller for the current tick.
        remaining_distance: Distance to the end of the current segment as
            seen by the last control decision.
        next_free: Whether the last control decision saw the next segment
            free.
        faulted: Whether the train was stopped after an error.
        fault: Message of the error that stopped the train.
    """

    def __init__(self, handle: TrainHandle, name: str,
                 envelope: PerformanceEnvelope, schedule: TrainSchedule,
                 kinematics: Optional[KinematicState] = None) -> None:
        self.handle = handle
        self.name = name
        self.envelope = envelope
        self.schedule = schedule
        self.kinematics = kinematics or KinematicState()
        self.command = TrainCommand.hold()
        self.remaining_distance: Optional[float] = None
        self.next_free = False
        self.faulted = False
        self.fault: Optional[str] = None

    def set_fault(self, message: str, position: Optional[float] = None
                  ) -> None:
        """Stop the train after an error.

        Args:
            message: Error description.
            position: When given, the train is placed at this position
                (usually the end of its current segment).
        """
        self.faulted = True
        self.fault = message
        self.command = TrainCommand.brake()
        self.kinematics.velocity = 0.0
        if position is not None:
            self.kinematics.position = position
            self.kinematics.previous_position = position

    def report_state(self) -> Dict[str, object]:
        """Get the train state as a dictionary.

        Returns:
            Dictionary containing the train state variables.
        """
        return {
            "handle": self.handle,
            "name": self.name,
            "segment": self.schedule.current(),
            "schedule_index": self.schedule.current_index,
            "position": self.kinematics.position,
            "previous_position": self.kinematics.previous_position,
            "velocity": self.kinematics.velocity,
            "command": self.command,
            "remaining_distance": self.remaining_distance,
            "next_free": self.next_free,
            "faulted": self.faulted,
            "fault": self.fault,
        }

    def __repr__(self):
        return (f"Train({self.name}, v={self.kinematics.velocity:.2f}, "
                f"pos={self.kinematics.position:.2f})")


def update_speed(kinematics: KinematicState, command: TrainCommand,
                 envelope: PerformanceEnvelope, tick_seconds: float) -> float:
    """Integrate velocity over one tick.

    The result is kept within [0, max_speed].

    Args:
        kinematics: State to update in place.
        command: Command in force for this tick.
        envelope: Performance limits of the train.
        tick_seconds: Length of the tick in seconds.

    Returns:
        The new velocity.
    """
    v = kinematics.velocity
    if command.command_type == CommandType.BRAKE:
        v = max(v - envelope.brake_deceleration * tick_seconds, 0.0)
    else:
        v = v + command.acceleration(envelope) * tick_seconds
        v = min(max(v, 0.0), envelope.max_speed)
    kinematics.velocity = v
    return v


def update_position(train: Train, segment_length: float,
                    tick_seconds: float) -> Optional[SegmentTransfer]:
    """Integrate position over one tick.

    A train that reaches the end of its segment with a next segment
    scheduled is not moved; a SegmentTransfer is returned instead and the
    caller applies it. At the end of its schedule the train is clamped at
    the end of its segment.

    Args:
        train: Train to move.
        segment_length: Length of the train's current segment.
        tick_seconds: Length of the tick in seconds.

    Returns:
        The transfer to apply, or None.
    """
    state = train.kinematics
    state.previous_position = state.position
    candidate = state.position + state.velocity * tick_seconds

    # a train at rest on the boundary has not crossed it
    if candidate < segment_length or state.velocity == 0.0:
        state.position = candidate
        return None

    next_segment = train.schedule.peek_next()
    if next_segment is None:
        state.position = segment_length
        return None

    return SegmentTransfer(
        train=train.handle,
        leave=train.schedule.current(),
        enter=next_segment,
        carry_over=candidate - segment_length,
    )
