"""Simulation Backend

Runs the block-signaling control loop over a TrackNetwork: one control
decision, one velocity step and one position step per train and tick,
followed by the segment transfers collected during the position step.
"""
import itertools
import logging
from typing import Callable, Dict, List, Optional, Sequence

from trackModel.track_model_backend import TrackNetwork
from trainController.train_controller_backend import decide_command
from trainModel.train_model_backend import (
    KinematicState,
    SegmentTransfer,
    Train,
    TrainSchedule,
    update_position,
    update_speed,
)
from universal.config import SimulationConfig
from universal.global_clock import SimulationClock
from universal.universal import (
    InvalidHandle,
    InvariantViolation,
    PerformanceEnvelope,
    SegmentAlreadyOccupied,
    SegmentHandle,
    TrainHandle,
)

logger = logging.getLogger(__name__)

_simulation_generations = itertools.count(1)

# errors that stop a single train without ending the tick
TRAIN_FAULTS = (InvalidHandle, InvariantViolation)


class Simulation:
    """Trains on a track network, advanced in fixed ticks.

    Attributes:
        network: Track topology and occupancy registry.
        config: Tick length and safety margin.
        clock: Simulated time and the start/pause gate.
        generation: Identity stamped into every train handle issued here.
    """

    def __init__(self, network: TrackNetwork,
                 config: Optional[SimulationConfig] = None) -> None:
        self.network = network
        self.config = config or SimulationConfig()
        self.clock = SimulationClock(self.config.tick_seconds,
                                     self.config.real_time_step)
        self.generation = next(_simulation_generations)
        self._trains: List[Train] = []
        self._listeners: List[Callable[["Simulation"], None]] = []

    # ---- roster ----
    def spawn_train(self, name: str, envelope: PerformanceEnvelope,
                    segments: Sequence[SegmentHandle], start_index: int = 0,
                    position: float = 0.0,
                    velocity: float = 0.0) -> TrainHandle:
        """Create a train and make it the occupant of its start segment.

        Args:
            name: Label of the train.
            envelope: Performance limits.
            segments: Schedule of segments, in travel order.
            start_index: Index in the schedule of the start segment.
            position: Start position along the start segment.
            velocity: Start speed.

        Returns:
            Handle of the new train.

        Raises:
            InvalidHandle: A segment does not belong to the network.
            SegmentAlreadyOccupied: The start segment is taken; no train is
                created.
            ValueError: The schedule, position or velocity is invalid.
        """
        for segment in segments:
            self.network.segment(segment)
        schedule = TrainSchedule(segments, start_index)
        start = schedule.current()
        length = self.network.length_of(start)
        if not 0.0 <= position <= length:
            raise ValueError(
                f"Start position {position} outside segment of length "
                f"{length:.1f}.")
        if not 0.0 <= velocity <= envelope.max_speed:
            raise ValueError(
                f"Start velocity {velocity} outside [0, "
                f"{envelope.max_speed}].")

        handle = TrainHandle(len(self._trains), self.generation)
        self.network.reserve(start, handle)
        train = Train(handle, name, envelope, schedule,
                      KinematicState(position, position, velocity))
        self._trains.append(train)

        if envelope.max_speed * self.config.tick_seconds >= self.config.safety_margin:
            logger.warning(
                "Train %s can travel %.1f per tick at max speed, not less "
                "than the safety margin %.1f",
                name, envelope.max_speed * self.config.tick_seconds,
                self.config.safety_margin)
        logger.info("Spawned train %s on segment %s",
                    name, self.network.segment(start).name)
        return handle

    def train(self, handle: TrainHandle) -> Train:
        """Look up a train.

        Raises:
            InvalidHandle: The handle was not issued by this simulation.
        """
        if (not isinstance(handle, TrainHandle)
                or handle.generation != self.generation
                or not 0 <= handle.index < len(self._trains)):
            raise InvalidHandle(f"Train {handle} not found in simulation.")
        return self._trains[handle.index]

    @property
    def trains(self) -> List[Train]:
        return list(self._trains)

    def faulted_trains(self) -> List[Train]:
        return [t for t in self._trains if t.faulted]

    # ---- control loop ----
    def tick(self) -> bool:
        """Run one control cycle.

        Returns:
            False when the gate is closed; nothing is changed then.
        """
        if not self.clock.started:
            return False
        tick_seconds = self.config.tick_seconds

        for train in self._active_trains():
            self._guarded(train, self._control, train)

        for train in self._active_trains():
            update_speed(train.kinematics, train.command, train.envelope,
                         tick_seconds)

        transfers: List[SegmentTransfer] = []
        for train in self._active_trains():
            transfer = self._guarded(train, self._move, train)
            if transfer is not None:
                transfers.append(transfer)

        self._apply_transfers(transfers)
        self.clock.tick()
        self._notify_listeners()
        return True

    def run(self, ticks: int) -> int:
        """Run up to ``ticks`` ticks, stopping if the gate closes.

        Returns:
            Number of ticks run.
        """
        done = 0
        for _ in range(ticks):
            if not self.tick():
                break
            done += 1
        return done

    def advance(self, real_dt: float) -> int:
        """Feed wall-clock time and run the ticks that fall due.

        Wall-clock time while paused is discarded.

        Args:
            real_dt: Wall-clock seconds since the previous call.

        Returns:
            Number of ticks run.
        """
        if not self.clock.started:
            return 0
        return self.run(self.clock.accumulate(real_dt))

    def _active_trains(self) -> List[Train]:
        return [t for t in self._trains if not t.faulted]

    def _guarded(self, train: Train, step, *args):
        try:
            return step(*args)
        except TRAIN_FAULTS as exc:
            logger.exception("Train %s faulted", train.name)
            train.set_fault(str(exc))
            return None

    def _control(self, train: Train) -> None:
        current = train.schedule.current()
        following = train.schedule.peek_next()
        next_free = following is not None and self.network.is_free(following)
        decision = decide_command(
            train.kinematics.velocity,
            train.kinematics.position,
            train.command,
            train.envelope,
            self.network.length_of(current),
            next_free,
            self.config.tick_seconds,
            self.config.safety_margin,
        )
        if decision.command != train.command:
            logger.debug("Train %s: %s -> %s (remaining %.2f)", train.name,
                         train.command, decision.command,
                         decision.remaining_distance)
        train.command = decision.command
        train.remaining_distance = decision.remaining_distance
        train.next_free = decision.next_free

    def _move(self, train: Train) -> Optional[SegmentTransfer]:
        length = self.network.length_of(train.schedule.current())
        return update_position(train, length, self.config.tick_seconds)

    def _apply_transfers(self, transfers: Sequence[SegmentTransfer]) -> None:
        """Move occupancy and cursors for every boundary crossing.

        Transfers are applied one at a time in spawn order. A transfer
        whose target segment is held by another train, or was held when
        the train made its control decision, changes nothing except the
        train, which is faulted and stopped at the end of its segment.
        """
        for transfer in transfers:
            train = self._trains[transfer.train.index]
            try:
                if not train.next_free:
                    raise InvariantViolation(
                        f"Train {train.name} crossed into segment "
                        f"{self.network.segment(transfer.enter).name} after "
                        f"deciding with it occupied.")
                occupant = self.network.occupant_of(transfer.enter)
                if occupant is not None and occupant != train.handle:
                    raise SegmentAlreadyOccupied(
                        f"Train {train.name} cannot enter segment "
                        f"{self.network.segment(transfer.enter).name}, held "
                        f"by {self._trains[occupant.index].name}.")
                self.network.release(transfer.leave, train.handle)
                self.network.reserve(transfer.enter, train.handle)
                train.schedule.advance()
            except TRAIN_FAULTS as exc:
                logger.exception("Train %s faulted", train.name)
                train.set_fault(str(exc),
                                position=self.network.length_of(transfer.leave))
                continue

            state = train.kinematics
            state.position = min(transfer.carry_over,
                                 self.network.length_of(transfer.enter))
            state.previous_position = 0.0
            logger.debug("Train %s left %s for %s at %.2f", train.name,
                         self.network.segment(transfer.leave).name,
                         self.network.segment(transfer.enter).name,
                         state.position)

    # ---- read access ----
    def train_states(self) -> List[Dict[str, object]]:
        return [t.report_state() for t in self._trains]

    def segment_states(self) -> List[Dict[str, object]]:
        return self.network.get_network_status()["segments"]

    def interpolated_position(self, handle: TrainHandle) -> float:
        """Position between the last two ticks, for drawing.

        Interpolates previous and current position by the share of the
        next tick that has already elapsed in wall-clock time.
        """
        state = self.train(handle).kinematics
        fraction = self.clock.overstep_fraction
        return (state.previous_position
                + (state.position - state.previous_position) * fraction)

    def interpolated_point(self, handle: TrainHandle):
        """(x, y) of the interpolated position on the segment path."""
        segment = self.network.segment(self.train(handle).schedule.current())
        return segment.point_at(self.interpolated_position(handle)
                                / segment.length)

    # ---- listeners ----
    def add_listener(self, callback: Callable[["Simulation"], None]) -> None:
        """Register a callback run after every completed tick.

        Args:
            callback: Function called with the simulation.
        """
        if callback not in self._listeners:
            self._listeners.append(callback)

    def _notify_listeners(self) -> None:
        for cb in list(self._listeners):
            try:
                cb(self)
            except Exception:
                logger.exception("Listener raised an exception")
